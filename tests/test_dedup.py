import unittest
from collections import Counter

from codeatlas.entities.dedup import deduplicate
from codeatlas.entities.models import PipelineConfig, RawEntity
from codeatlas.entities.relevance import apply_relevance_filter


def _filtered(raw, cfg=None):
    return apply_relevance_filter(raw, cfg or PipelineConfig())


class TestDeduplicate(unittest.TestCase):
    def test_distinct_names_from_same_module_stay_separate(self):
        raw = [
            RawEntity(kind="import", name="Router", source="express", line=1),
            RawEntity(kind="import", name="Request", source="express", line=2),
        ]
        out = deduplicate(_filtered(raw), PipelineConfig())
        self.assertEqual([e.name for e in out], ["Router", "Request"])
        self.assertEqual([e.occurrences for e in out], [1, 1])

    def test_identical_entities_merge(self):
        raw = [
            RawEntity(kind="import", name="Router", source="express", specifiers=["b", "a"], line=1),
            RawEntity(kind="function", name="main", line=3),
            RawEntity(kind="import", name="Router", source="express", specifiers=["c", "a"], line=5),
        ]
        out = deduplicate(_filtered(raw), PipelineConfig())
        self.assertEqual([e.name for e in out], ["Router", "main"])

        router = out[0]
        self.assertEqual(router.occurrences, 2)
        self.assertEqual(router.merged_from, ["line-5"])
        self.assertEqual(router.specifiers, ["a", "b", "c"])

    def test_occurrences_sum_to_input_count(self):
        raw = [RawEntity(kind="call", name=n, line=i) for i, n in enumerate(["log", "log", "fetch", "log", "fetch"])]
        filtered = _filtered(raw)
        out = deduplicate(filtered, PipelineConfig())

        self.assertLessEqual(len(out), len(filtered))
        per_key = Counter(e.identity_key for e in filtered)
        for e in out:
            self.assertEqual(e.occurrences, per_key[e.identity_key])
        self.assertEqual(sum(e.occurrences for e in out), len(filtered))

    def test_merge_disabled_keeps_duplicates(self):
        raw = [RawEntity(kind="call", name="log", line=1), RawEntity(kind="call", name="log", line=2)]
        out = deduplicate(_filtered(raw), PipelineConfig(merge_identical_entities=False))
        self.assertEqual(len(out), 2)
        self.assertTrue(all(e.occurrences == 1 for e in out))

    def test_source_is_part_of_identity(self):
        raw = [
            RawEntity(kind="import", name="parse", source="./a"),
            RawEntity(kind="import", name="parse", source="./b"),
        ]
        self.assertEqual(len(deduplicate(_filtered(raw), PipelineConfig())), 2)


if __name__ == "__main__":
    unittest.main()
