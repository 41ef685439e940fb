import unittest

from codeatlas.entities.confidence import ConfidenceEvidence, compute_score, gather_evidence, has_sibling_test
from codeatlas.entities.models import DocBlock, DocParam, NormalizedEntity, Relationship


def ent(name, kind="class", **kw):
    return NormalizedEntity(kind=kind, name=name, **kw)


class TestConfidence(unittest.TestCase):
    def test_user_service_without_docs(self):
        e = ent("UserService")
        ev = gather_evidence(e, None, "service", [], [e], 0)
        self.assertFalse(ev.has_doc)
        self.assertAlmostEqual(compute_score(ev), 0.5 * 0.9)

    def test_documented_and_typed(self):
        e = ent("UserService")
        doc = DocBlock(description="Loads and saves users.", summary="", params=(DocParam("id", "string"),))
        ev = gather_evidence(e, doc, "service", [Relationship("db", "uses", 0.8)], [e], 2)
        self.assertTrue(ev.has_doc)
        self.assertTrue(ev.has_type_annotations)
        self.assertAlmostEqual(compute_score(ev), (0.5 + 0.15 + 0.10 + 0.05 + 0.06) * 0.9)

    def test_short_description_is_not_documentation(self):
        e = ent("X")
        ev = gather_evidence(e, DocBlock(description="Does x.", summary=""), "unknown", [], [e], 0)
        self.assertFalse(ev.has_doc)

    def test_exported_requires_internal_export(self):
        e = ent("api", "export", category="internal")
        self.assertTrue(gather_evidence(e, None, "unknown", [], [e], 0).is_exported)
        e = ent("api", "export", category="external")
        self.assertFalse(gather_evidence(e, None, "unknown", [], [e], 0).is_exported)

    def test_sibling_test_excludes_self(self):
        svc = ent("UserService")
        self.assertFalse(has_sibling_test(svc, [svc, ent("UserService")]))
        self.assertTrue(has_sibling_test(svc, [svc, ent("UserServiceTest")]))

    def test_score_is_clamped(self):
        ev = ConfidenceEvidence(True, True, True, 10, 10, True, 0.9)
        self.assertEqual(compute_score(ev), 1.0)
        low = ConfidenceEvidence(False, False, False, 0, 0, False, 0.5)
        self.assertAlmostEqual(compute_score(low), 0.25)


if __name__ == "__main__":
    unittest.main()
