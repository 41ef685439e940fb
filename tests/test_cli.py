import json
import tempfile
import unittest
from pathlib import Path

from typer.testing import CliRunner

from codeatlas.cli import app


class TestCli(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self._tmp.name)
        self.db = self.dir / "graph.db"
        self.entities = self.dir / "raw.json"
        self.entities.write_text(
            json.dumps(
                [
                    {"kind": "import", "name": "Router", "source": "express", "line": 1},
                    {"kind": "class", "name": "UserService", "line": 3, "metadata": {"declaration": "class UserService { run() { helper(); } }"}},
                    {"kind": "function", "name": "helper", "line": 9},
                    {"kind": "typeRef", "name": "string", "line": 4},
                ]
            ),
            encoding="utf-8",
        )
        self.runner = CliRunner()

    def tearDown(self):
        self._tmp.cleanup()

    def _scan(self):
        return self.runner.invoke(
            app, ["scan", "--entities", str(self.entities), "--file", "src/users.ts", "--db", str(self.db)]
        )

    def test_scan_then_stats_and_retrieve(self):
        res = self._scan()
        self.assertEqual(res.exit_code, 0, res.output)
        self.assertIn("Raw entities: 4", res.output)
        self.assertIn("Saved:", res.output)

        res = self.runner.invoke(app, ["stats", "--db", str(self.db)])
        self.assertEqual(res.exit_code, 0, res.output)
        self.assertIn("Nodes", res.output)

        res = self.runner.invoke(
            app,
            ["retrieve", "user service", "--db", str(self.db), "--workspace", str(self.dir), "--source", "code", "--min-score", "0"],
        )
        self.assertEqual(res.exit_code, 0, res.output)

    def test_empty_query_exits_with_validation_code(self):
        self._scan()
        res = self.runner.invoke(app, ["retrieve", "   ", "--db", str(self.db), "--workspace", str(self.dir)])
        self.assertEqual(res.exit_code, 2)

    def test_malformed_entities_file(self):
        self.entities.write_text(json.dumps({"kind": "import"}), encoding="utf-8")
        res = self._scan()
        self.assertEqual(res.exit_code, 2)

    def test_non_numeric_line_exits_with_validation_code(self):
        self.entities.write_text(json.dumps([{"kind": "function", "name": "helper", "line": "nine"}]), encoding="utf-8")
        res = self._scan()
        self.assertEqual(res.exit_code, 2)
        self.assertIn("Invalid line", res.output)


if __name__ == "__main__":
    unittest.main()
