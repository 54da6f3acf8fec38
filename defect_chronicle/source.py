"""
Python source parsing: callable spans, class snapshots and code metrics.
"""

import ast
import logging
from dataclasses import dataclass
from pathlib import PurePosixPath

from radon.complexity import cc_visit

from .config import SOURCE_EXTENSIONS, TEST_PATH_MARKER
from .timeline import CodeClass, CodeMethod, Release

logger = logging.getLogger(__name__)

CALLABLE_NODES = (ast.FunctionDef, ast.AsyncFunctionDef)


class SourceParseError(ValueError):
    """Source text that could not be parsed"""


@dataclass(frozen=True)
class CallableSpan:
    """A function or method and its line range, decorators included.

    class_name is the innermost enclosing class, None at module level.
    """
    name: str
    start_line: int
    end_line: int
    class_name: str | None = None


def _parse(source: str, path: str = '<source>') -> ast.Module:
    try:
        return ast.parse(source, filename=path)
    except (SyntaxError, ValueError) as e:
        raise SourceParseError(f"Cannot parse {path}: {e}") from e


def _span(node) -> tuple[int, int]:
    start = min([node.lineno] + [d.lineno for d in node.decorator_list])
    return start, node.end_lineno


def parse_callables(source: str, path: str = '<source>') -> list[CallableSpan]:
    """Every function and method in the source, nested ones included"""
    tree = _parse(source, path)
    spans = []

    def visit(node, owner):
        for child in ast.iter_child_nodes(node):
            if isinstance(child, ast.ClassDef):
                visit(child, child.name)
                continue
            if isinstance(child, CALLABLE_NODES):
                start, end = _span(child)
                spans.append(CallableSpan(child.name, start, end, owner))
            visit(child, owner)

    visit(tree, None)
    return sorted(spans, key=lambda s: (s.start_line, s.name))


def signature_of(node) -> str:
    """Parameter names as written, e.g. '(self, path, *args, timeout)'"""
    args = node.args
    params = [a.arg for a in args.posonlyargs + args.args]
    if args.vararg:
        params.append('*' + args.vararg.arg)
    params.extend(a.arg for a in args.kwonlyargs)
    if args.kwarg:
        params.append('**' + args.kwarg.arg)
    return '(' + ', '.join(params) + ')'


def complexity_by_line(source: str) -> dict[int, int]:
    """Cyclomatic complexity of each function keyed by its 'def' line"""
    try:
        blocks = cc_visit(source)
    except SyntaxError:
        return {}

    result = {}
    pending = list(blocks)
    while pending:
        block = pending.pop()
        pending.extend(getattr(block, 'methods', []))
        pending.extend(getattr(block, 'inner_classes', []))
        pending.extend(getattr(block, 'closures', []))
        if not hasattr(block, 'methods'):
            result[block.lineno] = block.complexity
    return result


def extract_classes(source: str, path: str, release: Release | None = None) -> list[CodeClass]:
    """
    Split a module into class units.

    Each class definition becomes one unit holding its own methods; the
    module's top-level functions form a unit named after the module.
    Units without methods are left out.
    """
    tree = _parse(source, path)
    complexity = complexity_by_line(source)
    module_name = PurePosixPath(path).stem

    def build(name, body, module_level=False):
        code_class = CodeClass(name=name, path=path, release=release, module_level=module_level)
        for node in body:
            if not isinstance(node, CALLABLE_NODES):
                continue
            start, end = _span(node)
            code_class.methods.append(CodeMethod(
                name=node.name,
                path=path,
                class_name=name,
                start_line=start,
                end_line=end,
                release=release,
                signature=signature_of(node),
                loc=end - start + 1,
                complexity=complexity.get(node.lineno, 1),
            ))
        return code_class

    units = [build(module_name, tree.body, module_level=True)]
    for node in ast.walk(tree):
        if isinstance(node, ast.ClassDef):
            units.append(build(node.name, node.body))

    return [u for u in units if u.methods]


def is_source_file(path: str, extensions=SOURCE_EXTENSIONS) -> bool:
    return bool(path) and path.endswith(tuple(extensions))


def load_release_classes(backend, release: Release, extensions=SOURCE_EXTENSIONS) -> list[CodeClass]:
    """Snapshot the non-test source classes as of the release's last commit"""
    if not release.commits:
        logger.warning("Release %s has no commits, nothing to snapshot", release.name)
        return []

    head = release.commits[-1].hash
    classes = []
    for path in backend.list_files(head):
        if not is_source_file(path, extensions) or TEST_PATH_MARKER.search(path):
            continue
        source = backend.file_content(head, path)
        if source is None:
            continue
        try:
            classes.extend(extract_classes(source, path, release))
        except SourceParseError as e:
            logger.warning("Release %s: %s", release.name, e)

    release.classes = classes
    logger.info("Release %s: found %d classes with methods", release.name, len(classes))
    return classes
