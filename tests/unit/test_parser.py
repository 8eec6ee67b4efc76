"""
Unit tests for the .aid parser.
"""

from aidef.models import (
    CommentNode,
    ConstraintNode,
    IncludeNode,
    ModuleNode,
    ParamNode,
    ProseNode,
    PseudoSelector,
)
from aidef.parser import parse, parse_source, tokenize


def parse_text(source):
    return parse(tokenize(source).tokens, "<test>")


class TestModules:
    """Tests for module blocks and selectors."""

    def test_simple_module(self):
        """Test a module with a prose body."""
        result = parse_text("server {\n  Handles requests\n}")

        assert result.errors == []
        module = result.ast.children[0]
        assert isinstance(module, ModuleNode)
        assert module.name == "server"
        assert isinstance(module.children[0], ProseNode)
        assert module.children[0].text == "Handles requests"

    def test_tags_and_pseudo_selectors(self):
        """Test '.tag' and ':pseudo(args)' suffixes."""
        result = parse_text("server.api.public:port(80, 443) {\n}")
        module = result.ast.children[0]

        assert module.name == "server"
        assert module.tags == ["api", "public"]
        assert module.pseudos == [PseudoSelector(name="port", args=["80", "443"])]

    def test_brace_on_next_line(self):
        """Test the opening brace may follow on another line."""
        result = parse_text("server\n{\n}")

        assert isinstance(result.ast.children[0], ModuleNode)

    def test_nested_with_combinator(self):
        """Test a nested module with a child combinator."""
        result = parse_text("parent {\n  > child {\n    body\n  }\n}")
        parent = result.ast.children[0]
        child = parent.children[0]

        assert isinstance(child, ModuleNode)
        assert child.name == "child"
        assert child.combinator == "child"

    def test_sibling_modules(self):
        """Test several top-level modules."""
        result = parse_text("server {\n}\nclient {\n}")

        assert [node.name for node in result.ast.children] == ["server", "client"]

    def test_prose_before_module(self):
        """Test prose stops where a module selector starts."""
        result = parse_text("Intro text\nserver {\n}")

        assert isinstance(result.ast.children[0], ProseNode)
        assert result.ast.children[0].text == "Intro text"
        assert isinstance(result.ast.children[1], ModuleNode)


class TestStatements:
    """Tests for params, includes, constraints and comments."""

    def test_constraint(self):
        """Test a ';'-terminated run is a constraint."""
        node = parse_text("Must validate input;").ast.children[0]

        assert isinstance(node, ConstraintNode)
        assert node.text == "Must validate input"
        assert node.important is False

    def test_important_constraint(self):
        """Test !important is stripped and recorded."""
        node = parse_text("Use TLS !important;").ast.children[0]

        assert isinstance(node, ConstraintNode)
        assert node.text == "Use TLS"
        assert node.important is True

    def test_important_prefix_word_is_prose(self):
        """Test !importantly is kept as prose text."""
        node = parse_text("Make it fast !importantly").ast.children[0]

        assert isinstance(node, ProseNode)
        assert node.text == "Make it fast !importantly"
        assert node.important is False

    def test_param_number(self):
        """Test a numeric param."""
        node = parse_text("timeout=30;").ast.children[0]

        assert node == ParamNode(name="timeout", value="30", source=node.source)

    def test_param_string_with_spaces(self):
        """Test a quoted param value."""
        node = parse_text('title = "hello world";').ast.children[0]

        assert isinstance(node, ParamNode)
        assert node.name == "title"
        assert node.value == "hello world"

    def test_param_without_semicolon(self):
        """Test a param ended by a newline."""
        children = parse_text("mode = strict\nMore prose").ast.children

        assert isinstance(children[0], ParamNode)
        assert children[0].value == "strict"
        assert isinstance(children[1], ProseNode)

    def test_include(self):
        """Test an include statement."""
        node = parse_text("include ./shared;").ast.children[0]

        assert isinstance(node, IncludeNode)
        assert node.path == "./shared"

    def test_include_with_extension(self):
        """Test an include path containing a dot stays one path."""
        node = parse_text("include utils.aid;").ast.children[0]

        assert isinstance(node, IncludeNode)
        assert node.path == "utils.aid"

    def test_include_word_in_prose(self):
        """Test 'include' followed by several words is prose."""
        node = parse_text("include unit tests").ast.children[0]

        assert isinstance(node, ProseNode)
        assert node.text == "include unit tests"

    def test_include_without_path(self):
        """Test 'include;' is an error."""
        result = parse_text("include;")

        assert [error.message for error in result.errors] == ["Expected path after 'include'"]

    def test_comment(self):
        """Test comments are kept as nodes."""
        node = parse_text("# a note").ast.children[0]

        assert isinstance(node, CommentNode)
        assert node.text == "# a note"


class TestErrors:
    """Tests for error recovery."""

    def test_unclosed_module_returns_partial(self):
        """Test a missing '}' is reported and the partial module is kept."""
        result = parse_text("server {\n  hello")

        assert [error.message for error in result.errors] == ["Expected '}'"]
        module = result.ast.children[0]
        assert isinstance(module, ModuleNode)
        assert module.children[0].text == "hello"

    def test_stray_closing_brace_is_warning(self):
        """Test a stray '}' at top level is skipped with a warning."""
        result = parse_text("}\nserver {\n}")

        assert result.errors[0].message == "Unexpected '}'"
        assert result.errors[0].severity == "warning"
        assert isinstance(result.ast.children[0], ModuleNode)

    def test_parse_source_folds_lexer_errors(self):
        """Test lexer errors appear in the parse result."""
        result = parse_source('title = "open', "spec.aid")

        assert "Unclosed string" in [error.message for error in result.errors]

    def test_error_location(self):
        """Test errors carry the file and line."""
        result = parse_source("a {\n  b", "spec.aid")

        assert result.errors[0].location.start.file == "spec.aid"
        assert result.errors[0].format().startswith("spec.aid:")
