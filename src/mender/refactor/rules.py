"""Built-in pattern rules.

Each rule pairs a diagnostic-message predicate with a best-effort textual
fix. Transforms are pure: shared helper modules are declared through
`requires` and reached through `context.import_for`.
"""

from __future__ import annotations

import re

from mender.refactor.model import DiagnosticRecord, PatternRule, TransformContext, pattern_rule
from mender.refactor.text_edits import insert_import, insert_named_import, rewrite_lines

MONGO_UTILS = "mongo-util-types"
PROMISE_UTILS = "promise-utils"
EXPRESS_EXTENSIONS = "express-extensions"


@pattern_rule(
    "objectid",
    "MongoDB ObjectId type errors and _id property access",
    r"Property '_id' does not exist on type|ObjectId|(?<![\w$])_id\b",
    requires=(MONGO_UTILS,),
)
def objectid(text: str, context: TransformContext) -> str:
    text = re.sub(r"new\s+mongoose\.Types\.ObjectId\(([^()]+)\)", r"toObjectId(\1)", text)
    text = re.sub(r"String\(\s*([\w$]+)\._id\s*\)", r"getSafeId(\1)", text)
    text = re.sub(r"(?<![\w$.])([\w$]+)\._id\.toString\(\)", r"getSafeId(\1)", text)
    return insert_named_import(
        text,
        ("toObjectId", "getSafeId"),
        context.import_for(MONGO_UTILS),
        marker=MONGO_UTILS,
    )


@pattern_rule(
    "promise",
    "Promise.allSettled result access and Promise handling",
    r"does not exist on type 'PromiseSettledResult|Type 'Promise<.*?>' is not assignable",
    requires=(PROMISE_UTILS,),
)
def promise(text: str, context: TransformContext) -> str:
    text = re.sub(r"(?<![\w$.])([\w$]+)\.status\s*===\s*['\"]fulfilled['\"]", r"isFulfilled(\1)", text)
    text = re.sub(r"(?<![\w$.])([\w$]+)\.status\s*===\s*['\"]rejected['\"]", r"isRejected(\1)", text)
    text = re.sub(
        r"(?<![\w$.])([\w$]+)\.status\s*!==\s*['\"]fulfilled['\"]", r"!isFulfilled(\1)", text
    )
    return insert_named_import(
        text,
        ("isFulfilled", "isRejected", "getPromiseResult"),
        context.import_for(PROMISE_UTILS),
        marker=PROMISE_UTILS,
    )


_NULLABLE_RE = re.compile(r"Object is possibly '(?:undefined|null)'|is possibly '(?:undefined|null)'")
_CHAIN_RE = re.compile(r"[\w$]+(?:\??\.[\w$]+)*")


def _optional_chain(body: str, record: DiagnosticRecord) -> str:
    start = record.column - 1
    match = _CHAIN_RE.match(body, start) if 0 <= start < len(body) else None
    if match is None:
        return body
    chain = match.group(0)
    rest = body[match.end():]
    if re.match(r"\s*(?:[-+*/%&|^]|\?\?|\|\||&&)?=(?!=)", rest) or rest.startswith(("++", "--")):
        return body
    if "." in chain:
        chain = re.sub(r"(?<!\?)\.", "?.", chain)
    elif rest.startswith("["):
        chain = chain + "?."
    else:
        return body
    return body[:start] + chain + rest


@pattern_rule(
    "nullable",
    "Null and undefined checks for optional properties",
    _NULLABLE_RE.pattern,
    codes=("TS2531", "TS2532", "TS2533", "TS18047", "TS18048"),
)
def nullable(text: str, context: TransformContext) -> str:
    return rewrite_lines(
        text,
        context,
        lambda record: bool(_NULLABLE_RE.search(record.message))
        or record.code in {"TS2531", "TS2532", "TS2533", "TS18047", "TS18048"},
        _optional_chain,
    )


_DEFAULT_IMPORT_RE = re.compile(r"^(\s*)import\s+([\w$]+)\s+from\s+(['\"])([^'\"]+)\3;")
_DEFAULT_IMPORT_MESSAGE_RE = re.compile(r"has no default export|can only be default-imported")


def _namespace_import(body: str, record: DiagnosticRecord) -> str:
    return _DEFAULT_IMPORT_RE.sub(r"\1import * as \2 from \3\4\3;", body, count=1)


@pattern_rule(
    "import",
    "Import statement and module resolution issues",
    r"Cannot find module|has no default export|can only be default-imported",
    codes=("TS1192", "TS1259", "TS2307"),
)
def import_statements(text: str, context: TransformContext) -> str:
    # Rewrite only the import lines the checker rejected.
    return rewrite_lines(
        text,
        context,
        lambda record: record.code in {"TS1192", "TS1259"}
        or bool(_DEFAULT_IMPORT_MESSAGE_RE.search(record.message)),
        _namespace_import,
    )


_ASSIGNABLE_RE = re.compile(r"Type '.*?' is not assignable to type|is not assignable to parameter of type")


def _assert_any(body: str, record: DiagnosticRecord) -> str:
    rewritten, count = re.subn(r"\breturn\s+([\w$.]+)\s*;", r"return \1 as any;", body)
    if count:
        return rewritten
    rewritten, count = re.subn(
        r"^(\s*(?:(?:const|let|var)\s+)?[\w$.]+\s*(?::\s*[^=]+)?(?<![=!<>])=(?!=)\s*)([\w$.]+)\s*;",
        r"\1\2 as any;",
        body,
    )
    if count:
        return rewritten
    start = record.column - 1
    match = re.compile(r"[\w$.]+").match(body, start) if 0 <= start < len(body) else None
    if match is None or body[match.end():].lstrip().startswith("as "):
        return body
    return body[:start] + f"({match.group(0)} as any)" + body[match.end():]


@pattern_rule(
    "type-assertion",
    "Type assertion and type narrowing issues",
    _ASSIGNABLE_RE.pattern,
    codes=("TS2322", "TS2345"),
)
def type_assertion(text: str, context: TransformContext) -> str:
    return rewrite_lines(
        text,
        context,
        lambda record: bool(_ASSIGNABLE_RE.search(record.message))
        or record.code in {"TS2322", "TS2345"},
        _assert_any,
    )


@pattern_rule(
    "error-handling",
    "Caught errors of type unknown",
    r"is of type 'unknown'",
    codes=("TS18046", "TS2571"),
)
def error_handling(text: str, context: TransformContext) -> str:
    text = re.sub(r"catch\s*\(\s*([\w$]+)\s*\)", r"catch (\1: any)", text)
    return re.sub(
        r"\b([\w$]+)\.message\s*\|\|\s*String\(\s*\1\s*\)",
        r"\1 instanceof Error ? \1.message : String(\1)",
        text,
    )


@pattern_rule(
    "mongoose-schema",
    "Mongoose schema and model typings",
    r"\bSchema\b|mongoose\.model",
)
def mongoose_schema(text: str, context: TransformContext) -> str:
    text = re.sub(r"new\s+(?:mongoose\.)?Schema\(", lambda m: m.group(0)[:-1] + "<any>(", text)
    return re.sub(
        r"mongoose\.model\((['\"][\w$]+['\"]\s*,\s*[\w$]+Schema)\)",
        r"mongoose.model<any>(\1)",
        text,
    )


@pattern_rule(
    "express-request",
    "Express request and response typing",
    r"req\.user|Property 'user' does not exist on type 'Request",
    requires=(EXPRESS_EXTENSIONS,),
)
def express_request(text: str, context: TransformContext) -> str:
    if "req.user" not in text or "AuthenticatedRequest" in text:
        return text
    text = re.sub(r"\(\s*req\s*:\s*Request\b", "(req: AuthenticatedRequest", text)
    return insert_import(
        text,
        f"import {{ AuthenticatedRequest }} from '{context.import_for(EXPRESS_EXTENSIONS)}';",
        marker=EXPRESS_EXTENSIONS,
    )


BUILTIN_RULES: tuple[PatternRule, ...] = (
    objectid,
    promise,
    nullable,
    import_statements,
    type_assertion,
    error_handling,
    mongoose_schema,
    express_request,
)
