import unittest

from codeatlas.entities.models import NormalizedEntity, PackageInfo, Relationship
from codeatlas.entities.relationships import (
    call_site_relationships,
    count_usages,
    external_package_relationships,
    infer_relationships,
    inheritance_relationships,
    merge_relationships,
    refine_relationship,
    usage_relationships,
)


def ent(name, kind="function", **kw):
    return NormalizedEntity(kind=kind, name=name, **kw)


class TestRelationshipInference(unittest.TestCase):
    def test_import_is_explicit(self):
        e = ent("express", "import", source="express", category="external")
        rels = infer_relationships(e, [e])
        imports = [r for r in rels if r.type == "imports"]
        self.assertEqual(imports, [Relationship("express", "imports", 1.0, ("explicit-import-statement",))])

    def test_usage_counts_and_calls(self):
        decl = "function render() { const u = loadUser(1); return format(u) + loadUser(2) + theme; }"
        known = [("render", "function"), ("loadUser", "function"), ("format", "function"), ("theme", "variable"), ("themes", "variable")]
        rels = {r.target: r for r in usage_relationships(ent("render"), known, decl)}

        self.assertEqual(set(rels), {"loadUser", "format", "theme"})
        self.assertEqual(rels["loadUser"].type, "calls")
        self.assertAlmostEqual(rels["loadUser"].confidence, 0.8)
        self.assertEqual(rels["theme"].type, "uses")
        self.assertAlmostEqual(rels["theme"].confidence, 0.75)

    def test_usage_confidence_is_capped(self):
        decl = " ".join(["x"] * 20)
        rels = usage_relationships(ent("f"), [("x", "variable")], decl)
        self.assertAlmostEqual(rels[0].confidence, 0.95)

    def test_whole_word_matching(self):
        self.assertEqual(count_usages("user", "user users user_id $user user"), 2)

    def test_inheritance_from_declaration(self):
        decl = "class Admin extends User implements Auditable, Serializable<T> {\n}"
        rels = inheritance_relationships(ent("Admin", "class"), decl)
        self.assertEqual(
            [(r.target, r.type) for r in rels],
            [("User", "extends"), ("Auditable", "implements"), ("Serializable", "implements")],
        )
        self.assertTrue(all(r.confidence == 1.0 for r in rels))

    def test_python_bases(self):
        rels = inheritance_relationships(ent("Repo", "class"), "class Repo(Base, Generic[T]):\n    pass")
        self.assertEqual([r.target for r in rels], ["Base", "Generic"])

    def test_call_site_and_external_package(self):
        self.assertEqual(call_site_relationships(ent("fetch", "call"))[0].confidence, 0.8)
        imp = ent("Router", "import", source="express/router", category="external")
        rels = external_package_relationships(imp)
        self.assertEqual([(r.target, r.type, r.confidence) for r in rels], [("express", "depends-on", 0.85)])

    def test_package_manifest_dependency(self):
        imp = ent("express", "import", source="express", category="external", package_info=PackageInfo("express", "4.18.2"))
        rels = infer_relationships(imp, [imp])
        self.assertIn(Relationship("express", "depends-on", 1.0, ("package-manifest",)), rels)

    def test_merge_keeps_max_confidence_and_evidence_union(self):
        merged = merge_relationships(
            [Relationship("a", "uses", 0.7, ("x",)), Relationship("a", "uses", 0.9, ("y", "x")), Relationship("a", "calls", 0.8)]
        )
        self.assertEqual(len(merged), 2)
        self.assertEqual(merged[0], Relationship("a", "uses", 0.9, ("x", "y")))


class TestRefineRelationship(unittest.TestCase):
    def test_known_target_and_evidence_boost(self):
        r = refine_relationship(Relationship("loadUser", "calls", 0.75, ("call-expression",)), ent("render"), {"loadUser"})
        self.assertAlmostEqual(r.confidence, 0.9)

    def test_unresolved_external_import_penalty(self):
        src = ent("lodash", "import", source="lodash", category="external")
        r = refine_relationship(Relationship("lodash", "imports", 1.0, ("explicit-import-statement",)), src, set())
        self.assertAlmostEqual(r.confidence, 0.9)

    def test_values_stay_in_unit_interval(self):
        src = ent("x", "import", source="x", category="external")
        for conf in (0.0, 0.05, 0.5, 1.0):
            r = refine_relationship(Relationship("x", "imports", conf, ("a", "b", "c")), src, {"x"})
            self.assertGreaterEqual(r.confidence, 0.0)
            self.assertLessEqual(r.confidence, 1.0)


if __name__ == "__main__":
    unittest.main()
