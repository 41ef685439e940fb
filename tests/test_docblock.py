import unittest

from codeatlas.entities.docblock import extract_doc_block, find_doc_block, parse_doc_block
from codeatlas.errors import EvidenceExtractionError


SOURCE = """import x from 'y';

/**
 * Loads a user by id from the store.
 * @param {string} id - The user id
 * @param {number} [retries=3] how many times
 * @returns {Promise<User>} the user
 * @throws {NotFoundError} when missing
 * @service
 * @deprecated use fetchUser
 */

export async function loadUser(id, retries) {
  return null;
}
"""


class TestDocBlock(unittest.TestCase):
    def test_extracts_block_above_entity(self):
        doc = extract_doc_block(SOURCE, 13)
        self.assertIsNotNone(doc)
        self.assertEqual(doc.description, "Loads a user by id from the store.")
        self.assertEqual(doc.summary, doc.description)

        self.assertEqual([p.name for p in doc.params], ["id", "retries"])
        self.assertEqual(doc.params[0].type, "string")
        self.assertEqual(doc.params[0].description, "The user id")
        self.assertTrue(doc.params[1].optional)
        self.assertEqual(doc.params[1].default, "3")
        self.assertEqual(doc.params[1].description, "how many times")

        self.assertEqual(doc.returns.type, "Promise<User>")
        self.assertEqual(doc.throws[0].type, "NotFoundError")
        self.assertEqual([t.tag for t in doc.tags], ["service"])
        self.assertEqual(doc.deprecated, "use fetchUser")

    def test_no_block(self):
        self.assertIsNone(extract_doc_block(SOURCE, 1))
        self.assertIsNone(extract_doc_block("const a = 1;\nconst b = 2;\n", 2))
        self.assertIsNone(extract_doc_block("const a = 1;\n", 99))

    def test_plain_block_comment_is_not_documentation(self):
        self.assertIsNone(find_doc_block("/* license */\nfunction f() {}\n", 2))

    def test_missing_opener_raises(self):
        with self.assertRaises(EvidenceExtractionError):
            find_doc_block("  * orphan\n */\nfunction f() {}\n", 3)

    def test_unbalanced_type_raises(self):
        with self.assertRaises(EvidenceExtractionError):
            parse_doc_block("/**\n * @param {string id\n */")

    def test_param_without_name_raises(self):
        with self.assertRaises(EvidenceExtractionError):
            parse_doc_block("/**\n * @param {string}\n */")

    def test_multiline_example_and_async(self):
        doc = parse_doc_block("/**\n * Runs.\n * @async\n * @since 1.2\n * @example\n * run(1)\n * run(2)\n */")
        self.assertTrue(doc.is_async)
        self.assertEqual(doc.since, "1.2")
        self.assertEqual(doc.examples, ("run(1)\nrun(2)",))


if __name__ == "__main__":
    unittest.main()
