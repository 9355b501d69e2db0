from __future__ import annotations

from pathlib import Path

from mender.refactor.model import DiagnosticRecord, TransformContext
from mender.refactor.rules import (
    EXPRESS_EXTENSIONS,
    MONGO_UTILS,
    PROMISE_UTILS,
    error_handling,
    express_request,
    import_statements,
    mongoose_schema,
    nullable,
    objectid,
    promise,
    type_assertion,
)

SERVICE = Path("/repo/src/modules/users/user.service.ts")
IMPORTS = {
    MONGO_UTILS: "../../types/mongo-util-types",
    PROMISE_UTILS: "../../types/promise-utils",
    EXPRESS_EXTENSIONS: "../../types/express-extensions",
}


def _context(text: str, *diagnostics: tuple[int, int, str, str]) -> TransformContext:
    return TransformContext(
        file_path=SERVICE,
        root=Path("/repo"),
        diagnostics=tuple(
            DiagnosticRecord(str(SERVICE), line, column, code, message)
            for line, column, code, message in diagnostics
        ),
        utility_imports=IMPORTS,
        baseline_text=text,
    )


def test_objectid_rewrites_id_access_and_imports_used_helpers() -> None:
    text = (
        "import { User } from './user.model';\n"
        "\n"
        "export const key = (user: User) => String(user._id);\n"
        "export const ref = (order: any) => order.customer._id.toString();\n"
        "export const oid = (id: string) => new mongoose.Types.ObjectId(id);\n"
    )

    fixed = objectid.transform(text, _context(text))

    assert fixed == (
        "import { toObjectId, getSafeId } from '../../types/mongo-util-types';\n"
        "import { User } from './user.model';\n"
        "\n"
        "export const key = (user: User) => getSafeId(user);\n"
        "export const ref = (order: any) => order.customer._id.toString();\n"
        "export const oid = (id: string) => toObjectId(id);\n"
    )
    assert objectid.transform(fixed, _context(fixed)) == fixed
    assert objectid.requires == (MONGO_UTILS,)


def test_objectid_leaves_text_alone_when_no_helper_is_used() -> None:
    text = "export const a = 1;\n"

    assert objectid.transform(text, _context(text)) == text


def test_promise_uses_settled_result_guards() -> None:
    text = "if (r.status === 'fulfilled') {}\nif (r.status === \"rejected\") {}\n"

    fixed = promise.transform(text, _context(text))

    assert fixed == (
        "import { isFulfilled, isRejected } from '../../types/promise-utils';\n"
        "if (isFulfilled(r)) {}\n"
        "if (isRejected(r)) {}\n"
    )


def test_nullable_adds_optional_chaining_only_at_reported_reads() -> None:
    text = (
        "const name = user.profile.name;\n"
        "user.profile.name = 'x';\n"
        "const first = items[0];\n"
        "const plain = value;\n"
    )
    context = _context(
        text,
        (1, 14, "TS2532", "Object is possibly 'undefined'."),
        (2, 1, "TS2532", "Object is possibly 'undefined'."),
        (3, 15, "TS18048", "'items' is possibly 'undefined'."),
        (4, 15, "TS18048", "'value' is possibly 'undefined'."),
    )

    fixed = nullable.transform(text, context)

    assert fixed == (
        "const name = user?.profile?.name;\n"
        "user.profile.name = 'x';\n"
        "const first = items?.[0];\n"
        "const plain = value;\n"
    )


def test_nullable_relocates_lines_shifted_by_an_earlier_edit() -> None:
    baseline = "const name = user.profile.name;\n"
    shifted = "import { x } from './x';\n" + baseline
    context = TransformContext(
        file_path=SERVICE,
        root=Path("/repo"),
        diagnostics=(
            DiagnosticRecord(str(SERVICE), 1, 14, "TS2532", "Object is possibly 'undefined'."),
        ),
        baseline_text=baseline,
    )

    assert nullable.transform(shifted, context) == (
        "import { x } from './x';\nconst name = user?.profile?.name;\n"
    )


def test_import_switches_only_rejected_default_imports() -> None:
    text = (
        "import mongoose from 'mongoose';\n"
        "import config from './config';\n"
        "import express from 'express';\n"
        "import { Router } from 'express';\n"
    )
    context = _context(
        text,
        (1, 8, "TS1259", "Module '\"mongoose\"' can only be default-imported using the 'esModuleInterop' flag"),
        (2, 8, "TS1192", "Module '\"./config\"' has no default export."),
    )

    assert import_statements.transform(text, context) == (
        "import * as mongoose from 'mongoose';\n"
        "import * as config from './config';\n"
        "import express from 'express';\n"
        "import { Router } from 'express';\n"
    )


def test_import_leaves_default_imports_alone_without_a_diagnostic() -> None:
    text = "import express from 'express';\nconst app = express();\n"
    context = _context(text, (3, 1, "TS2307", "Cannot find module './missing'."))

    assert import_statements.transform(text, context) == text


def test_type_assertion_casts_returns_assignments_and_arguments() -> None:
    text = "function f(): Foo {\n  return value;\n}\nconst x: Foo = other;\ncall(arg);\n"
    context = _context(
        text,
        (2, 3, "TS2322", "Type 'Bar' is not assignable to type 'Foo'."),
        (4, 7, "TS2322", "Type 'Bar' is not assignable to type 'Foo'."),
        (5, 6, "TS2345", "Argument of type 'Bar' is not assignable to parameter of type 'Foo'."),
    )

    assert type_assertion.transform(text, context) == (
        "function f(): Foo {\n  return value as any;\n}\nconst x: Foo = other as any;\ncall((arg as any));\n"
    )


def test_error_handling_types_catch_bindings() -> None:
    text = "try {\n  run();\n} catch (e) {\n  log(e.message || String(e));\n}\n"

    assert error_handling.transform(text, _context(text)) == (
        "try {\n  run();\n} catch (e: any) {\n"
        "  log(e instanceof Error ? e.message : String(e));\n}\n"
    )


def test_mongoose_schema_adds_generics_once() -> None:
    text = "const s = new Schema({});\nexport default mongoose.model('User', userSchema);\n"

    fixed = mongoose_schema.transform(text, _context(text))

    assert fixed == (
        "const s = new Schema<any>({});\n"
        "export default mongoose.model<any>('User', userSchema);\n"
    )
    assert mongoose_schema.transform(fixed, _context(fixed)) == fixed


def test_express_request_uses_authenticated_request() -> None:
    text = (
        "import { Request, Response } from 'express';\n"
        "export const me = (req: Request, res: Response) => res.json(req.user);\n"
    )

    fixed = express_request.transform(text, _context(text))

    assert fixed == (
        "import { AuthenticatedRequest } from '../../types/express-extensions';\n"
        "import { Request, Response } from 'express';\n"
        "export const me = (req: AuthenticatedRequest, res: Response) => res.json(req.user);\n"
    )
    assert express_request.transform(fixed, _context(fixed)) == fixed


def test_crlf_line_endings_survive_line_rewrites() -> None:
    text = "const name = user.profile.name;\r\nconst other = 1;\r\n"
    context = _context(text, (1, 14, "TS2532", "Object is possibly 'undefined'."))

    assert nullable.transform(text, context) == (
        "const name = user?.profile?.name;\r\nconst other = 1;\r\n"
    )
