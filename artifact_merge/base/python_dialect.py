"""
libcst implementation of the source-tree facility.

Page objects are the first top-level class of a module, with their locators
held in a dict literal assigned to ``elements`` (the attribute name is
configurable). Test suites are pytest modules: every top-level class is a
describe block whose directly nested functions are its cases, and
module-level functions are cases of the root block.

libcst keeps every byte of whitespace and every comment, so nodes that are
not touched render exactly as they were read.
"""
from __future__ import annotations

import logging
from typing import List, Optional, Sequence

import libcst as cst

from artifact_merge.base.members import (
    ClassMember,
    DescribeBlock,
    ElementEntry,
    ElementField,
    ImportBinding,
    ItBlock,
    Method,
    OpaqueMember,
    PageObjectClass,
    TestSuite,
)
from artifact_merge.base.source_tree import (
    ParseError,
    SourceTree,
    SourceTreeFacility,
)

LOG = logging.getLogger("python_dialect")


###############################################################################
# ── helpers: node inspection ────────────────────────────────────────────────
###############################################################################


def _same_nodes(left: Sequence[cst.CSTNode],
                right: Sequence[cst.CSTNode]) -> bool:
    return len(left) == len(right) and all(
        a is b for a, b in zip(left, right))


def _is_docstring(statement: cst.CSTNode) -> bool:
    return (isinstance(statement, cst.SimpleStatementLine)
            and len(statement.body) == 1
            and isinstance(statement.body[0], cst.Expr)
            and isinstance(statement.body[0].value,
                           (cst.SimpleString, cst.ConcatenatedString)))


def _is_import(statement: cst.CSTNode) -> bool:
    return isinstance(statement, cst.SimpleStatementLine) and all(
        isinstance(s, (cst.Import, cst.ImportFrom)) for s in statement.body)


def _is_future_import(statement: cst.CSTNode) -> bool:
    return _is_import(statement) and all(
        isinstance(s, cst.ImportFrom)
        and isinstance(s.module, cst.Name)
        and s.module.value == "__future__"
        for s in statement.body)


def _block_statements(node: cst.ClassDef) -> List[cst.CSTNode]:
    """Statements of a class body; a one-line body gets one line per part."""
    if isinstance(node.body, cst.IndentedBlock):
        return list(node.body.body)
    parts = node.body.body
    return [cst.SimpleStatementLine(
        body=[small],
        trailing_whitespace=(node.body.trailing_whitespace
                             if small is parts[-1]
                             else cst.TrailingWhitespace()))
        for small in parts]


def _without_semicolons(statement: cst.CSTNode) -> cst.CSTNode:
    if not isinstance(statement, cst.SimpleStatementLine):
        return statement
    return statement.with_changes(body=[
        s.with_changes(semicolon=cst.MaybeSentinel.DEFAULT)
        for s in statement.body])


def _rebuild_block(node: cst.ClassDef,
                   statements: List[cst.CSTNode]) -> cst.ClassDef:
    """Return *node* with *statements* as its body, or *node* if unchanged."""
    if isinstance(node.body, cst.IndentedBlock):
        if _same_nodes(statements, node.body.body):
            return node
        return node.with_changes(
            body=node.body.with_changes(body=statements))

    parts = node.body.body
    if len(statements) == len(parts) and all(
            isinstance(s, cst.SimpleStatementLine) and
            _same_nodes(s.body, [small])
            for s, small in zip(statements, parts)):
        return node
    # "class Page: pass" grew or changed members, so it needs a real block now
    return node.with_changes(body=cst.IndentedBlock(
        body=[_without_semicolons(s) for s in statements]))


def _marker_line(marker: str) -> cst.EmptyLine:
    return cst.EmptyLine(comment=cst.Comment(f"# {marker}"))


def _rejoin(original: List[cst.BaseDictElement],
            entries: List[cst.BaseDictElement],
            lbrace: cst.LeftCurlyBrace) -> List[cst.BaseDictElement]:
    """
    Fix up the commas after the entries of a dict literal changed.

    An entry still followed by its original neighbour keeps its comma
    untouched. Other entries get the separator used between existing
    entries, and the final entry takes over the closing comma (and thereby
    the whitespace before ``}``) of the original dict. A lone saved entry
    has no separator to copy; when the dict spans lines, the separator breaks
    the line the same way ``{`` does.
    """
    if not original:
        return entries
    if len(original) > 1:
        separator = original[-2].comma
    elif isinstance(lbrace.whitespace_after, cst.ParenthesizedWhitespace):
        separator = cst.Comma(whitespace_after=lbrace.whitespace_after)
    else:
        separator = cst.MaybeSentinel.DEFAULT
    closing = original[-1].comma
    rejoined = []
    for position, entry in enumerate(entries):
        if position == len(entries) - 1:
            rejoined.append(entry.with_changes(comma=closing))
        elif position + 1 < len(original) and \
                entry is original[position] and \
                entries[position + 1] is original[position + 1]:
            rejoined.append(entry)
        else:
            rejoined.append(entry.with_changes(comma=separator))
    return rejoined


###############################################################################
# ── facility ────────────────────────────────────────────────────────────────
###############################################################################


class PythonSourceFacility(SourceTreeFacility):
    def __init__(self, elements_field: str = "elements"):
        self.elements_field = elements_field

    # -- parse / render -----------------------------------------------------

    def parse(self, text: str, artifact: Optional[str] = None) -> SourceTree:
        try:
            module = cst.parse_module(text)
        except cst.ParserSyntaxError as e:
            raise ParseError(
                f"invalid Python syntax: {e.message} "
                f"(line {e.raw_line}, column {e.raw_column})",
                artifact=artifact) from e
        return SourceTree(module, artifact=artifact)

    def render(self, tree: SourceTree) -> str:
        return tree.root.code

    # -- page objects -------------------------------------------------------

    def read_page_object(
            self, tree: SourceTree) -> Optional[PageObjectClass]:
        """
        The first top-level class is the page object. Classes declared after
        it (and their members) are never read, so a helper class placed
        above the page class takes its role.
        """
        for statement in tree.root.body:
            if isinstance(statement, cst.ClassDef):
                return PageObjectClass(
                    name=statement.name.value,
                    members=[self._class_member(s)
                             for s in _block_statements(statement)],
                    node=statement)
        return None

    def write_page_object(
            self, tree: SourceTree, page_object: PageObjectClass) -> None:
        statements = [self._member_node(m) for m in page_object.members]
        class_node = _rebuild_block(page_object.node, statements)
        tree.root = tree.root.with_changes(body=[
            class_node if s is page_object.node else s
            for s in tree.root.body])
        page_object.node = class_node

    def tag_method(self, method: Method, marker: str) -> Method:
        node = method.node
        body = node.body
        if isinstance(body, cst.IndentedBlock):
            first = body.body[0]
            first = first.with_changes(
                leading_lines=[_marker_line(marker), *first.leading_lines])
            body = body.with_changes(body=[first, *body.body[1:]])
        else:
            body = cst.IndentedBlock(body=[cst.SimpleStatementLine(
                body=body.body,
                leading_lines=[_marker_line(marker)],
                trailing_whitespace=body.trailing_whitespace)])
        return Method(name=method.name, node=node.with_changes(body=body))

    def field_insertion_point(self, page_object: PageObjectClass) -> int:
        members = page_object.members
        if members and isinstance(members[0], OpaqueMember) and \
                _is_docstring(members[0].node):
            return 1
        return 0

    def _class_member(self, statement: cst.CSTNode) -> ClassMember:
        if isinstance(statement, cst.FunctionDef):
            return Method(name=statement.name.value, node=statement)
        value = self._element_dict(statement)
        if value is not None:
            return ElementField(
                name=self.elements_field,
                entries=[self._entry(e) for e in value.elements],
                node=statement)
        return OpaqueMember(node=statement)

    def _element_dict(self, statement: cst.CSTNode) -> Optional[cst.Dict]:
        """The dict literal of ``elements = {...}``, None for anything else."""
        if not isinstance(statement, cst.SimpleStatementLine) or \
                len(statement.body) != 1:
            return None
        small = statement.body[0]
        if isinstance(small, cst.Assign):
            if len(small.targets) != 1:
                return None
            target = small.targets[0].target
        elif isinstance(small, cst.AnnAssign):
            target = small.target
        else:
            return None
        if isinstance(target, cst.Name) and \
                target.value == self.elements_field and \
                isinstance(small.value, cst.Dict):
            return small.value
        return None

    @staticmethod
    def _entry(element: cst.BaseDictElement) -> ElementEntry:
        if isinstance(element, cst.DictElement) and \
                isinstance(element.key, cst.SimpleString):
            name = element.key.evaluated_value
            if isinstance(name, str):
                return ElementEntry(name=name, node=element)
        LOG.debug(f"Keeping unnamed element entry {type(element).__name__}")
        return ElementEntry(name=None, node=element)

    def _member_node(self, member: ClassMember) -> cst.CSTNode:
        if isinstance(member, ElementField):
            return self._rebuild_field(member)
        return member.node

    @staticmethod
    def _rebuild_field(element_field: ElementField) -> cst.CSTNode:
        line = element_field.node
        small = line.body[0]
        original = list(small.value.elements)
        entries = [e.node for e in element_field.entries]
        if _same_nodes(entries, original):
            return line
        value = small.value.with_changes(
            elements=_rejoin(original, entries, small.value.lbrace))
        return line.with_changes(body=[small.with_changes(value=value)])

    # -- test suites --------------------------------------------------------

    def read_suite(self, tree: SourceTree) -> TestSuite:
        suite = TestSuite()
        for statement in tree.root.body:
            if _is_import(statement):
                suite.statements.append(ImportBinding(
                    text=self._import_text(tree, statement), node=statement))
            elif isinstance(statement, cst.ClassDef):
                suite.statements.append(DescribeBlock(
                    name=statement.name.value,
                    body=[ItBlock(name=s.name.value, node=s)
                          if isinstance(s, cst.FunctionDef)
                          else OpaqueMember(node=s)
                          for s in _block_statements(statement)],
                    node=statement))
            elif isinstance(statement, cst.FunctionDef):
                suite.statements.append(
                    ItBlock(name=statement.name.value, node=statement))
            else:
                suite.statements.append(OpaqueMember(node=statement))
        return suite

    def write_suite(self, tree: SourceTree, suite: TestSuite) -> None:
        body = []
        for statement in suite.statements:
            if isinstance(statement, DescribeBlock):
                statement.node = _rebuild_block(
                    statement.node, [m.node for m in statement.body])
            body.append(statement.node)
        tree.root = tree.root.with_changes(body=body)

    def tag_case(self, case: ItBlock, marker: str) -> ItBlock:
        node = case.node.with_changes(
            leading_lines=[*case.node.leading_lines, _marker_line(marker)])
        return ItBlock(name=case.name, node=node)

    def import_insertion_point(self, suite: TestSuite) -> int:
        statements = suite.statements
        position = 0
        if statements and isinstance(statements[0], OpaqueMember) and \
                _is_docstring(statements[0].node):
            position = 1
        while position < len(statements) and \
                isinstance(statements[position], ImportBinding) and \
                _is_future_import(statements[position].node):
            position += 1
        return position

    @staticmethod
    def _import_text(tree: SourceTree,
                     statement: cst.SimpleStatementLine) -> str:
        """Rendered import without the comments or blank lines above it."""
        return tree.root.code_for_node(
            statement.with_changes(leading_lines=())).strip()
