import tempfile
import unittest
from pathlib import Path

from codeatlas.entities.discovery import discover_and_attach
from codeatlas.entities.embedding import documentation_text, embed_documentation
from codeatlas.entities.models import PipelineConfig, RawEntity
from codeatlas.entities.pipeline import EntityPipeline
from codeatlas.entities.static import enrich_static
from codeatlas.errors import EmbeddingServiceError, SourceUnavailable, ValidationError
from codeatlas.graph.models import ContentChunk, Subgraph


SOURCE = """import { Router } from 'express';

/**
 * Service for loading and saving users.
 * @param {string} id - user id
 */
export class UserService {
  load(id) { return loadUser(id); }
}

function loadUser(id) {
  return id;
}
"""


def raw_entities():
    return [
        RawEntity(kind="import", name="Router", source="express", specifiers=["Router"], line=1),
        RawEntity(kind="class", name="UserService", line=7),
        RawEntity(kind="typeRef", name="string", line=8),
        RawEntity(kind="variable", name="tmp", scope="local", line=8),
        RawEntity(kind="function", name="loadUser", line=11),
    ]


class FakeEmbeddings:
    model_name = "fake-model"

    def __init__(self, *, fail_init=False, fail_embed=False):
        self.fail_init = fail_init
        self.fail_embed = fail_embed
        self.texts = []

    def initialize(self):
        if self.fail_init:
            raise EmbeddingServiceError("no model")

    def embed(self, text):
        if self.fail_embed:
            raise EmbeddingServiceError("boom")
        self.texts.append(text)
        return [1.0, 0.0]


class FakeStore:
    def __init__(self, existing=(), fail=False):
        self.existing = set(existing)
        self.fail = fail

    def create_relationships(self, edges):
        return len(edges)

    def get_subgraph(self, seed_ids, depth, max_nodes):
        return Subgraph(nodes=[], edges=[])

    def get_related_chunks(self, ids, depth):
        if self.fail:
            raise SourceUnavailable("store down")
        return [ContentChunk(id="c1", content="class body")] if set(ids) & self.existing else []

    def get_chunk_contents(self, node_ids):
        return {n: "class body" for n in node_ids if n in self.existing}


class TestPipelineStages(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.file = str(Path(self._tmp.name) / "src" / "users.ts")
        self.cfg = PipelineConfig()

    def tearDown(self):
        self._tmp.cleanup()

    def _static(self):
        result = EntityPipeline(self.cfg).process(raw_entities(), self.file, source_code=SOURCE)
        return {e.name: e for e in result.static_enriched}

    def test_static_enrichment(self):
        by_name = self._static()
        self.assertEqual(set(by_name), {"Router", "UserService", "loadUser"})

        svc = by_name["UserService"]
        self.assertEqual(svc.semantic_type, "service")
        self.assertEqual(svc.doc_block.description, "Service for loading and saving users.")
        self.assertEqual([(r.target, r.type) for r in svc.relationships], [("loadUser", "calls")])
        # 0.75 usage, +0.1 known target, +0.05 one evidence item
        self.assertAlmostEqual(svc.relationships[0].confidence, 0.9)
        # (0.5 + doc 0.15 + types 0.10 + one relationship 0.05) * 0.9
        self.assertAlmostEqual(svc.confidence, 0.72)
        self.assertEqual(svc.location, (self.file, 7))

        load = by_name["loadUser"]
        self.assertEqual(load.semantic_type, "unknown")
        # one other entity targets it: (0.5 + 0.03) * 0.5
        self.assertAlmostEqual(load.confidence, 0.265)

    def test_doc_blocks_skipped_when_documentation_off(self):
        cfg = PipelineConfig(extract_documentation=False)
        result = EntityPipeline(cfg).process(raw_entities(), self.file, source_code=SOURCE)
        svc = next(e for e in result.enriched if e.name == "UserService")
        self.assertIsNone(svc.doc_block)
        self.assertEqual(svc.semantic_type, "service")
        # (0.5 + one relationship 0.05) * 0.9
        self.assertAlmostEqual(svc.confidence, 0.495)

    def test_confidence_disabled_uses_relevance(self):
        cfg = PipelineConfig(calculate_confidence=False)
        result = EntityPipeline(cfg).process(raw_entities(), self.file, source_code=SOURCE)
        for e in result.enriched:
            self.assertEqual(e.confidence, e.relevance_score)

    def test_malformed_doc_block_is_skipped(self):
        src = "/**\n * @param {broken\n */\nfunction f() {}\n"
        ents = EntityPipeline(self.cfg).process([RawEntity(kind="function", name="f", line=4)], self.file).normalized
        with self.assertLogs("codeatlas.entities.static", level="WARNING"):
            out = enrich_static(ents, self.cfg, source_code=src)
        self.assertEqual(len(out), 1)
        self.assertIsNone(out[0].doc_block)

    def test_all_confidences_in_unit_interval(self):
        result = EntityPipeline(self.cfg).process(raw_entities(), self.file, source_code=SOURCE)
        for e in result.enriched:
            self.assertGreaterEqual(e.confidence, 0.0)
            self.assertLessEqual(e.confidence, 1.0)
            for r in e.relationships:
                self.assertGreaterEqual(r.confidence, 0.0)
                self.assertLessEqual(r.confidence, 1.0)

    def test_doc_embedding(self):
        emb = FakeEmbeddings()
        result = EntityPipeline(self.cfg, embedding_service=emb).process(raw_entities(), self.file, source_code=SOURCE)
        svc = next(e for e in result.enriched if e.name == "UserService")
        self.assertEqual(svc.doc_embedding["dimensions"], 2)
        self.assertEqual(svc.doc_embedding["model"], "fake-model")
        self.assertIn("Entity: UserService", emb.texts[0])
        self.assertIn("@param id {string} user id", documentation_text(svc))
        self.assertTrue(all(e.doc_embedding is None for e in result.enriched if e.name != "UserService"))

    def test_embedding_failures_keep_entities(self):
        for emb in (FakeEmbeddings(fail_init=True), FakeEmbeddings(fail_embed=True)):
            static = EntityPipeline(self.cfg).process(raw_entities(), self.file, source_code=SOURCE).static_enriched
            with self.assertLogs("codeatlas.entities.embedding", level="WARNING"):
                out = embed_documentation(static, emb)
            self.assertEqual(len(out), 3)
            self.assertTrue(all(e.doc_embedding is None for e in out))

    def test_discovery_links_existing_node(self):
        store = FakeStore(existing={"entity:UserService:class"})
        result = EntityPipeline(self.cfg, graph_store=store).process(raw_entities(), self.file, source_code=SOURCE)
        svc = next(e for e in result.enriched if e.name == "UserService")
        refs = [r for r in svc.relationships if r.type == "references"]
        self.assertEqual(len(refs), 1)
        self.assertEqual(refs[0].target, "entity:UserService:class")
        self.assertEqual(refs[0].confidence, 0.85)

        # The static snapshot is left untouched.
        static_svc = next(e for e in result.static_enriched if e.name == "UserService")
        self.assertFalse(any(r.type == "references" for r in static_svc.relationships))

    def test_discovery_failure_is_not_found(self):
        static = EntityPipeline(self.cfg).process(raw_entities(), self.file, source_code=SOURCE).static_enriched
        before = [list(e.relationships) for e in static]
        with self.assertLogs("codeatlas.entities.discovery", level="WARNING"):
            out = discover_and_attach(static, self.cfg, store=FakeStore(fail=True))
        self.assertEqual([e.relationships for e in out], before)

    def test_documentation_from_doc_chunks(self):
        chunks = [
            ContentChunk(id="a", content="Loads a user.", metadata={"symbolName": "loadUser", "chunkType": "jsdoc"}),
            ContentChunk(id="b", content="function body", metadata={"symbolName": "UserService", "chunkType": "code"}),
        ]
        result = EntityPipeline(self.cfg).process(raw_entities(), self.file, chunks=chunks, source_code=SOURCE)
        docs = {e.name: e.documentation for e in result.enriched}
        self.assertEqual(docs["loadUser"], "Loads a user.")
        self.assertIsNone(docs["UserService"])


class TestEntityPipeline(unittest.TestCase):
    def test_stats(self):
        with tempfile.TemporaryDirectory() as d:
            raw = raw_entities() + [RawEntity(kind="class", name="UserService", line=20)]
            result = EntityPipeline().process(raw, str(Path(d) / "users.ts"), source_code=SOURCE)
        s = result.stats
        self.assertEqual((s.total_raw, s.total_filtered, s.discarded_count), (6, 4, 2))
        self.assertEqual((s.deduplicated_count, s.final_count), (1, 3))
        self.assertGreaterEqual(s.processing_time_ms, 0.0)

    def test_deterministic(self):
        with tempfile.TemporaryDirectory() as d:
            path = str(Path(d) / "users.ts")
            first = EntityPipeline().process(raw_entities(), path, source_code=SOURCE)
            second = EntityPipeline().process(raw_entities(), path, source_code=SOURCE)
        self.assertEqual(first.normalized, second.normalized)
        self.assertEqual(first.enriched, second.enriched)

    def test_config_from_mapping(self):
        p = EntityPipeline({"skip_primitive_types": False})
        self.assertFalse(p.config.skip_primitive_types)
        with self.assertRaises(ValidationError):
            EntityPipeline({"skip_everything": True})


if __name__ == "__main__":
    unittest.main()
