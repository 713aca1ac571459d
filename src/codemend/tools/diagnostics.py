"""Heuristic diagnostic tools over the working view.

These are line-oriented pattern checks, not parsers. Each returns a
findings report as text plus the structured findings in metadata.
"""

import json
import re
from dataclasses import asdict, dataclass

from codemend.models import ToolExecutionResult
from codemend.models.tool_models import ListFilesArgs, OptionalFileArgs
from codemend.tools.workspace import ToolContext

MAX_LINE_LENGTH = 120
MAX_FILE_LINES = 500
MAX_NESTING_DEPTH = 5
MAX_REPORTED_FINDINGS = 50


@dataclass
class Finding:
    file: str
    line: int
    rule: str
    severity: str
    message: str


@dataclass(frozen=True)
class LineRule:
    rule: str
    severity: str
    message: str
    pattern: re.Pattern


SECURITY_RULES: list[LineRule] = [
    LineRule("eval", "high", "Use of eval() executes arbitrary code", re.compile(r"\beval\s*\(")),
    LineRule("exec", "high", "Use of exec() executes arbitrary code", re.compile(r"\bexec\s*\(")),
    LineRule(
        "inner-html",
        "medium",
        "Assignment to innerHTML can enable XSS",
        re.compile(r"\.innerHTML\s*=|dangerouslySetInnerHTML"),
    ),
    LineRule(
        "hardcoded-secret",
        "high",
        "Possible hard-coded secret",
        re.compile(
            r"""(?i)\b(api[_-]?key|secret|password|passwd|token)\b\s*[:=]\s*["'][^"']{6,}["']"""
        ),
    ),
    LineRule(
        "shell-true",
        "high",
        "subprocess call with shell=True",
        re.compile(r"shell\s*=\s*True"),
    ),
    LineRule(
        "sql-concat",
        "high",
        "SQL built by string concatenation or interpolation",
        re.compile(
            r"""(?i)["'`]\s*(select|insert|update|delete)\b[^"'`]*["'`]\s*(\+|%)|"""
            r"""(?i:f["'](select|insert|update|delete)\b[^"']*\{)|"""
            r"""(?i:`(select|insert|update|delete)\b[^`]*\$\{)"""
        ),
    ),
    LineRule(
        "plain-http",
        "low",
        "Plain http:// URL",
        re.compile(r"http://(?!localhost|127\.0\.0\.1|0\.0\.0\.0)"),
    ),
    LineRule(
        "weak-hash",
        "medium",
        "Weak hash algorithm (md5/sha1)",
        re.compile(r"(?i)\b(md5|sha1)\b\s*\(|createHash\(\s*['\"](md5|sha1)['\"]"),
    ),
]

REVIEW_RULES: list[LineRule] = [
    LineRule("todo", "low", "Unresolved TODO/FIXME marker", re.compile(r"\b(TODO|FIXME|XXX)\b")),
    LineRule(
        "debug-print",
        "low",
        "Debug output left in code",
        re.compile(r"\bconsole\.(log|debug)\s*\(|^\s*print\s*\("),
    ),
    LineRule("bare-except", "medium", "Bare except clause", re.compile(r"^\s*except\s*:")),
]

PERFORMANCE_RULES: list[LineRule] = [
    LineRule(
        "sync-io",
        "medium",
        "Synchronous file I/O blocks the event loop",
        re.compile(r"\b(readFileSync|writeFileSync|existsSync)\s*\("),
    ),
    LineRule(
        "async-foreach",
        "medium",
        "forEach with an async callback does not await",
        re.compile(r"\.forEach\(\s*async\b"),
    ),
    LineRule(
        "length-in-loop-header",
        "low",
        "Length recomputed in every loop iteration",
        re.compile(r"\bfor\s*\(.*;\s*\w+\s*<\s*[\w.]+\.length\s*;|\bwhile\s+.*\blen\("),
    ),
]

_LOOP = re.compile(r"^\s*(for|while)\b|\.(forEach|map)\(")
_AWAIT = re.compile(r"\bawait\b")
_PY_IMPORT = re.compile(r"^\s*(?:from\s+([\w.]+)\s+import|import\s+([\w.]+))")
_JS_IMPORT = re.compile(r"""(?:import\s+(?:[^'"]+\s+from\s+)?|require\()\s*['"]([^'"]+)['"]""")


def _target_files(ctx: ToolContext, file_name: str | None) -> list[str]:
    if file_name:
        ctx.working_set.content(file_name)  # Raises when missing
        return [file_name]
    return ctx.working_set.names()


def _apply_rules(file_name: str, content: str, rules: list[LineRule]) -> list[Finding]:
    findings: list[Finding] = []
    for number, line in enumerate(content.splitlines(), start=1):
        for rule in rules:
            if rule.pattern.search(line):
                findings.append(Finding(file_name, number, rule.rule, rule.severity, rule.message))
    return findings


def _indent_of(line: str) -> int:
    expanded = line.expandtabs(4)
    return len(expanded) - len(expanded.lstrip(" "))


def _loop_findings(file_name: str, content: str) -> list[Finding]:
    """Nested loops and awaits inside loops, tracked by indentation."""
    findings: list[Finding] = []
    loop_indents: list[int] = []
    for number, line in enumerate(content.splitlines(), start=1):
        if not line.strip():
            continue
        indent = _indent_of(line)
        while loop_indents and indent <= loop_indents[-1]:
            loop_indents.pop()
        if loop_indents and _AWAIT.search(line):
            findings.append(
                Finding(file_name, number, "await-in-loop", "medium", "await inside a loop runs serially")
            )
        if _LOOP.search(line):
            if loop_indents:
                findings.append(
                    Finding(file_name, number, "nested-loop", "low", "Nested loop (quadratic cost)")
                )
            loop_indents.append(indent)
    return findings


def _report(title: str, findings: list[Finding]) -> ToolExecutionResult:
    if not findings:
        return ToolExecutionResult(output=f"{title}: no issues found.", metadata={"findings": []})
    shown = findings[:MAX_REPORTED_FINDINGS]
    lines = [f"- {f.file}:{f.line} [{f.severity}] {f.rule}: {f.message}" for f in shown]
    if len(findings) > len(shown):
        lines.append(f"... {len(findings) - len(shown)} more")
    return ToolExecutionResult(
        output=f"{title}: {len(findings)} finding(s)\n" + "\n".join(lines),
        metadata={"findings": [asdict(f) for f in findings]},
    )


def security_scan(args: OptionalFileArgs, ctx: ToolContext) -> ToolExecutionResult:
    findings: list[Finding] = []
    for name in _target_files(ctx, args.file_name):
        findings.extend(_apply_rules(name, ctx.working_set.content(name), SECURITY_RULES))
    return _report("Security scan", findings)


def code_review(args: OptionalFileArgs, ctx: ToolContext) -> ToolExecutionResult:
    findings: list[Finding] = []
    for name in _target_files(ctx, args.file_name):
        content = ctx.working_set.content(name)
        findings.extend(_apply_rules(name, content, REVIEW_RULES))
        lines = content.splitlines()
        for number, line in enumerate(lines, start=1):
            if len(line) > MAX_LINE_LENGTH:
                findings.append(
                    Finding(name, number, "long-line", "low", f"Line longer than {MAX_LINE_LENGTH} chars")
                )
            if line.strip() and _indent_of(line) // 4 > MAX_NESTING_DEPTH:
                findings.append(Finding(name, number, "deep-nesting", "medium", "Deeply nested block"))
        if len(lines) > MAX_FILE_LINES:
            findings.append(
                Finding(name, 1, "long-file", "low", f"File has {len(lines)} lines; consider splitting")
            )
    return _report("Code review", findings)


def analyze_performance(args: OptionalFileArgs, ctx: ToolContext) -> ToolExecutionResult:
    findings: list[Finding] = []
    for name in _target_files(ctx, args.file_name):
        content = ctx.working_set.content(name)
        findings.extend(_apply_rules(name, content, PERFORMANCE_RULES))
        findings.extend(_loop_findings(name, content))
    findings.sort(key=lambda f: (f.file, f.line))
    return _report("Performance analysis", findings)


def _is_external(module: str) -> bool:
    return not module.startswith((".", "/", "@/", "~/"))


def analyze_dependencies(args: ListFilesArgs, ctx: ToolContext) -> ToolExecutionResult:
    """Declared packages from manifests plus external imports per file."""
    ws = ctx.working_set
    declared: dict[str, list[str]] = {}
    imports: dict[str, list[str]] = {}
    for name in ws.names():
        content = ws.content(name)
        base = name.rsplit("/", 1)[-1]
        if base == "package.json":
            try:
                manifest = json.loads(content)
            except json.JSONDecodeError:
                manifest = {}
            packages: list[str] = []
            for section in ("dependencies", "devDependencies"):
                section_value = manifest.get(section) if isinstance(manifest, dict) else None
                if isinstance(section_value, dict):
                    packages.extend(section_value)
            declared[name] = packages
        elif base == "requirements.txt":
            declared[name] = [
                re.split(r"[<>=!~\[; ]", line.strip(), maxsplit=1)[0]
                for line in content.splitlines()
                if line.strip() and not line.strip().startswith(("#", "-"))
            ]
        modules: list[str] = []
        for line in content.splitlines():
            py_match = _PY_IMPORT.match(line) if name.endswith(".py") else None
            if py_match:
                module = (py_match.group(1) or py_match.group(2)).split(".")[0]
            else:
                js_match = _JS_IMPORT.search(line)
                module = js_match.group(1) if js_match else ""
            if module and _is_external(module) and module not in modules:
                modules.append(module)
        if modules:
            imports[name] = modules

    findings = [
        {"file": file, "module": module, "kind": "declared"}
        for file, packages in declared.items()
        for module in packages
    ] + [
        {"file": file, "module": module, "kind": "import"}
        for file, modules in imports.items()
        for module in modules
    ]
    if not findings:
        return ToolExecutionResult(output="No dependencies found.", metadata={"findings": []})
    lines = [f"{file}: declares {', '.join(pkgs) or '(none)'}" for file, pkgs in declared.items()]
    lines += [f"{file}: imports {', '.join(mods)}" for file, mods in imports.items()]
    return ToolExecutionResult(
        output="Dependency analysis:\n" + "\n".join(lines),
        metadata={"findings": findings},
    )
