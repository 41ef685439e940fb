import unittest

from codeatlas.entities.models import DocBlock, DocTag, NormalizedEntity
from codeatlas.entities.semantic import RULES, classify


def ent(name, kind="function", **kw):
    return NormalizedEntity(kind=kind, name=name, **kw)


class TestClassify(unittest.TestCase):
    def test_service_suffix(self):
        self.assertEqual(classify(ent("UserService", "class")), "service")

    def test_doc_tag_beats_naming(self):
        doc = DocBlock(description="", summary="", tags=(DocTag(tag="repository"),))
        self.assertEqual(classify(ent("UserService", "class"), doc), "repository")

    def test_ui_conventions(self):
        self.assertEqual(classify(ent("useAuth")), "react-hook")
        self.assertEqual(classify(ent("ProfilePage")), "react-component")
        self.assertEqual(classify(ent("ThemeContext", "variable")), "react-context")
        self.assertEqual(classify(ent("Card"), declaration="function Card() {\n  return <div/>;\n}"), "react-component")
        self.assertEqual(classify(ent("Card"), declaration="function Card() { return 1; }"), "unknown")

    def test_api_layer(self):
        self.assertEqual(classify(ent("handleClick")), "api-handler")
        self.assertEqual(classify(ent("userRoutes", "variable")), "api-route")
        self.assertEqual(classify(ent("loggingMiddleware")), "api-middleware")

    def test_architectural_and_utility_roles(self):
        self.assertEqual(classify(ent("UserEntity", "class")), "entity")
        self.assertEqual(classify(ent("CreateUserDto", "class")), "dto")
        self.assertEqual(classify(ent("stringUtils", "variable")), "utility")
        self.assertEqual(classify(ent("MAX_RETRIES", "variable")), "constant")
        self.assertEqual(classify(ent("appConfig", "variable")), "config")

    def test_tests_builtins_and_types(self):
        self.assertEqual(classify(ent("fetchUserMock")), "test-helper")
        self.assertEqual(classify(ent("consoleLogger", "variable")), "utility")
        self.assertEqual(classify(ent("Props", "typeRef")), "type-definition")
        self.assertEqual(classify(ent("doWork")), "unknown")

    def test_rule_table_is_priority_ordered(self):
        priorities = [r.priority for r in RULES]
        self.assertEqual(priorities, sorted(priorities))
        self.assertEqual(RULES[-1].semantic_type, "type-definition")


if __name__ == "__main__":
    unittest.main()
