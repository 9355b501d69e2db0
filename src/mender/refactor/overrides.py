"""Path-scoped fixes applied ahead of the generic pattern rules."""

from __future__ import annotations

import fnmatch
import re
from pathlib import Path
from typing import Callable

from mender.refactor.model import ScopedFixOverride
from mender.refactor.text_edits import insert_import, newline_of


def scope_glob(*patterns: str) -> Callable[[str], bool]:
    def _matches(posix_path: str) -> bool:
        return any(fnmatch.fnmatchcase(posix_path, pattern) for pattern in patterns)

    return _matches


def _socket_server(path: Path, text: str) -> str:
    if "SocketIOServer" not in text:
        text = insert_import(
            text,
            "import { Server as SocketIOServer, Socket } from 'socket.io';",
            marker="SocketIOServer",
        )
    text = re.sub(r"const io = new Server\(", "const io = new SocketIOServer(", text)
    return re.sub(
        r"socket\.on\((['\"])([\w:-]+)\1,\s*\(?([\w$]+)\)?\s*=>\s*\{",
        r"socket.on(\1\2\1, (\3: any) => {",
        text,
    )


_SOCKET_EVENT_HANDLER = (
    "/**\n"
    " * Interface for socket event handlers\n"
    " */\n"
    "export interface SocketEventHandler {\n"
    "  eventName: string;\n"
    "  handler: (socket: any, data: any) => void;\n"
    "}\n"
    "\n"
)


def _socket_handlers(path: Path, text: str) -> str:
    if "SocketEventHandler" not in text:
        match = re.search(r"^export ", text, flags=re.MULTILINE)
        if match is not None:
            block = _SOCKET_EVENT_HANDLER.replace("\n", newline_of(text))
            text = text[: match.start()] + block + text[match.start():]
    return re.sub(
        r"\b([\w$]+)\.on\((['\"])([\w:-]+)\2,\s*\(?([\w$]+)\)?\s*=>\s*\{",
        r"\1.on(\2\3\2, (\4: any) => {",
        text,
    )


def _invoice_model(path: Path, text: str) -> str:
    text = re.sub(
        r"const invoiceSchema = new Schema\(\{",
        "const invoiceSchema = new Schema<IInvoiceDocument>({",
        text,
    )
    text = re.sub(
        r"(invoiceSchema\.methods\.[\w$]+\s*=\s*(?:async\s+)?function\s*)\(\s*\)",
        r"\1(this: IInvoiceDocument)",
        text,
    )
    return re.sub(
        r"(invoiceSchema\.methods\.[\w$]+\s*=\s*(?:async\s+)?function\s*)\((?!\s*this\s*:)(?=\s*[\w$])",
        r"\1(this: IInvoiceDocument, ",
        text,
    )


def _invoice_generation(path: Path, text: str) -> str:
    if "PDFDocument" not in text:
        text = insert_import(text, "import { PDFDocument } from 'pdf-lib';", marker="pdf-lib")
    return re.sub(
        r"const (results|invoices) = await Promise\.all\(([^;]*?)\);",
        r"const \1 = await Promise.all(\2) as any[];",
        text,
    )


_XERO_SUPPRESSION_NOTES = (
    ("Phone", "// Using string literal as Phone type is not exported"),
    ("Address", "// Using string literal as Address type is not exported"),
    ("Invoice", "// Using InvoiceType and InvoiceStatus enums"),
)
_NESTED_ERROR_MESSAGE_RE = re.compile(
    r"([\w$]+) instanceof Error \? \(\1 instanceof Error \? (.*?) : String\(\1\)\) : String\(\1\)"
)


def _declarations_reference(path: Path, name: str) -> str | None:
    parts = path.parts
    if "modules" not in parts:
        return None
    depth = parts[::-1].index("modules")
    return f'/// <reference path="{"../" * depth}types/declarations/{name}.d.ts" />'


def _xero_invoice_service(path: Path, text: str) -> str:
    for subject, note in _XERO_SUPPRESSION_NOTES:
        text = re.sub(rf"// @ts-ignore.*- {subject} is used as a static enum", note, text)
    text = re.sub(
        r"// @ts-ignore.*- Invoice is used as a type and enum",
        "// Using XeroInvoice interface",
        text,
    )
    text = text.replace("Invoice.TypeEnum.ACCREC", "InvoiceType.ACCREC")
    text = text.replace("Invoice.StatusEnum.AUTHORISED", "InvoiceStatus.AUTHORISED")
    collapsed = 1
    while collapsed:
        text, collapsed = _NESTED_ERROR_MESSAGE_RE.subn(
            r"\1 instanceof Error ? \2 : String(\1)",
            text,
        )
    reference = _declarations_reference(path, "xero")
    if reference is not None and "types/declarations/xero" not in text:
        text = f"{reference}{newline_of(text)}{text}"
    return text


def _amazon_adapter(path: Path, text: str) -> str:
    if "ApiResponse" in text:
        return text
    return insert_import(
        text,
        "import { ApiResponse } from '../../core/api-types';",
        marker="api-types",
    )


BUILTIN_OVERRIDES: tuple[ScopedFixOverride, ...] = (
    ScopedFixOverride(
        name="websocket-socket-server",
        description="socket.io server typing in the websocket module",
        scope_matcher=scope_glob("*modules/websocket/*socket-server.ts"),
        transform=_socket_server,
    ),
    ScopedFixOverride(
        name="websocket-socket-handlers",
        description="Typed event handler registrations in the websocket module",
        scope_matcher=scope_glob("*modules/websocket/*socket-handlers.ts"),
        transform=_socket_handlers,
    ),
    ScopedFixOverride(
        name="invoice-model",
        description="Schema generics and method `this` typing for invoices",
        scope_matcher=scope_glob("*modules/invoice/*invoice.model.ts"),
        transform=_invoice_model,
    ),
    ScopedFixOverride(
        name="invoice-generation-service",
        description="PDF typing and Promise.all results in invoice generation",
        scope_matcher=scope_glob("*modules/invoice/*invoice-generation.service.ts"),
        transform=_invoice_generation,
    ),
    ScopedFixOverride(
        name="xero-invoice-service",
        description="Xero SDK enums, declarations and error messages in the invoice service",
        scope_matcher=scope_glob("*modules/xero-connector/*xero-invoice.service.ts"),
        transform=_xero_invoice_service,
    ),
    ScopedFixOverride(
        name="marketplaces-amazon-adapter",
        description="API response typing for the Amazon marketplace adapter",
        scope_matcher=scope_glob("*modules/marketplaces/*amazon-adapter.ts"),
        transform=_amazon_adapter,
    ),
)
