"""
Receipt Extraction Service
Turns an uploaded receipt image into amount, date and vendor suggestions
that pre-fill the transaction entry form. The user confirms before anything
is saved as a transaction.
"""
import io
import logging
import re
import zlib
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from smartbooks.core.config import settings

logger = logging.getLogger(__name__)

# Initialize S3 client using default AWS credential chain
s3 = boto3.client("s3", region_name=settings.S3_REGION)


class ReceiptError(Exception):
    """Base exception for receipt handling."""


class UnsupportedReceiptError(ReceiptError):
    """Uploaded file type is not accepted."""


class ReceiptTooLargeError(ReceiptError):
    """Uploaded file exceeds the configured size limit."""


class ExtractionFailedError(ReceiptError):
    """The extraction service could not read the receipt."""


@dataclass(frozen=True)
class ReceiptExtraction:
    text: str
    confidence: float
    amount: float
    date: str
    vendor: str

    def to_prefill(self) -> Dict[str, Any]:
        return {
            "amount": self.amount,
            "date": self.date,
            "description": f"Payment to {self.vendor}",
        }


class ReceiptExtractor(ABC):
    """Reads a receipt document and returns the fields needed for a transaction."""

    @abstractmethod
    def extract(self, filename: str, content: bytes) -> ReceiptExtraction:
        raise NotImplementedError


CANNED_RECEIPTS: Sequence[ReceiptExtraction] = (
    ReceiptExtraction(
        text=(
            "RECEIPT\nSupplies Store Ltd.\nDate: 2025-10-20\nItems:\n- Office Paper x5\n- Pens x10\n"
            "- Folders x3\nTotal: KES 2,500.00\nThank you for your business!"
        ),
        confidence=0.97,
        amount=2500.0,
        date="2025-10-20",
        vendor="Supplies Store Ltd.",
    ),
    ReceiptExtraction(
        text=(
            "INVOICE\nElectricity Company\nBill Date: 2025-10-15\nAccount: 123456\n"
            "Amount Due: KES 4,200.00\nDue Date: 2025-10-30"
        ),
        confidence=0.94,
        amount=4200.0,
        date="2025-10-15",
        vendor="Electricity Company",
    ),
    ReceiptExtraction(
        text="RECEIPT\nFuel Station\nDate: 2025-10-18\nLitres: 45.5\nPrice per L: KES 180\nTotal: KES 8,190.00",
        confidence=0.96,
        amount=8190.0,
        date="2025-10-18",
        vendor="Fuel Station",
    ),
    ReceiptExtraction(
        text=(
            "TAX INVOICE\nOffice Rent\nMonth: October 2025\nProperty: Suite 204\n"
            "Rent Amount: KES 35,000.00\nIssued: 2025-10-01"
        ),
        confidence=0.98,
        amount=35000.0,
        date="2025-10-01",
        vendor="Property Management",
    ),
)


class CannedReceiptExtractor(ReceiptExtractor):
    """
    Offline extractor for demos and tests.

    Always answers with one of a fixed set of records. The record is chosen
    from a CRC32 of the filename, so the same upload gives the same result.
    """

    def __init__(self, records: Optional[Sequence[ReceiptExtraction]] = None) -> None:
        self.records = tuple(CANNED_RECEIPTS if records is None else records)
        if not self.records:
            raise ValueError("CannedReceiptExtractor needs at least one record")

    def extract(self, filename: str, content: bytes) -> ReceiptExtraction:
        index = zlib.crc32(filename.encode("utf-8")) % len(self.records)
        return self.records[index]


_AMOUNT_RE = re.compile(r"\d[\d,]*(?:\.\d+)?")
_DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%m/%d/%Y", "%d-%m-%Y", "%d.%m.%Y", "%Y/%m/%d", "%d %b %Y", "%b %d, %Y")

TOTAL_FIELDS = ("TOTAL", "AMOUNT_DUE", "SUBTOTAL")
VENDOR_FIELDS = ("VENDOR_NAME", "NAME")
DATE_FIELDS = ("INVOICE_RECEIPT_DATE", "ORDER_DATE", "DELIVERY_DATE")


def parse_amount(text: Optional[str]) -> Optional[float]:
    if not text:
        return None
    matches = _AMOUNT_RE.findall(text)
    if not matches:
        return None
    try:
        return float(matches[-1].replace(",", ""))
    except ValueError:
        return None


def parse_receipt_date(text: Optional[str]) -> Optional[str]:
    if not text:
        return None
    cleaned = text.strip()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt).date().isoformat()
        except ValueError:
            continue
    return None


class TextractReceiptExtractor(ReceiptExtractor):
    """Extractor backed by the AWS Textract AnalyzeExpense API."""

    def __init__(self, client: Any = None, region_name: Optional[str] = None) -> None:
        self._client = client
        self._region_name = region_name or settings.TEXTRACT_REGION

    def _get_client(self):
        if self._client is None:
            self._client = boto3.client("textract", region_name=self._region_name)
        return self._client

    def extract(self, filename: str, content: bytes) -> ReceiptExtraction:
        try:
            response = self._get_client().analyze_expense(Document={"Bytes": content})
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Textract analyze_expense failed for {filename}: {str(e)}")
            raise ExtractionFailedError(f"Receipt extraction failed: {str(e)}") from e

        documents = response.get("ExpenseDocuments") or []
        if not documents:
            raise ExtractionFailedError("No expense document found in receipt")
        return self._parse_document(documents[0])

    def _parse_document(self, document: Dict[str, Any]) -> ReceiptExtraction:
        fields: Dict[str, Dict[str, Any]] = {}
        confidences: List[float] = []
        for field in document.get("SummaryFields", []):
            field_type = (field.get("Type") or {}).get("Text")
            value = field.get("ValueDetection") or {}
            if not field_type or not value.get("Text"):
                continue
            # Keep the first occurrence of each field type
            fields.setdefault(field_type, value)

        amount = None
        for name in TOTAL_FIELDS:
            if name in fields:
                amount = parse_amount(fields[name]["Text"])
                if amount is not None:
                    confidences.append(float(fields[name].get("Confidence", 0.0)))
                    break
        if amount is None:
            raise ExtractionFailedError("Could not read a total amount from the receipt")

        receipt_date = None
        for name in DATE_FIELDS:
            if name in fields:
                receipt_date = parse_receipt_date(fields[name]["Text"])
                if receipt_date:
                    confidences.append(float(fields[name].get("Confidence", 0.0)))
                    break

        vendor = "Unknown vendor"
        for name in VENDOR_FIELDS:
            if name in fields:
                vendor = fields[name]["Text"].strip()
                confidences.append(float(fields[name].get("Confidence", 0.0)))
                break

        lines = [
            block["Text"]
            for block in document.get("Blocks", [])
            if block.get("BlockType") == "LINE" and block.get("Text")
        ]

        # Textract reports confidence on a 0-100 scale
        confidence = round(sum(confidences) / len(confidences) / 100, 2) if confidences else 0.0

        return ReceiptExtraction(
            text="\n".join(lines),
            confidence=confidence,
            amount=amount,
            date=receipt_date or datetime.utcnow().date().isoformat(),
            vendor=vendor,
        )


def get_receipt_extractor() -> ReceiptExtractor:
    """FastAPI dependency returning the configured extractor."""
    if settings.RECEIPT_EXTRACTOR == "canned":
        return CannedReceiptExtractor()
    return TextractReceiptExtractor()


def validate_upload(filename: str, content_type: Optional[str], size: int) -> None:
    if content_type not in settings.RECEIPT_ALLOWED_TYPES:
        raise UnsupportedReceiptError(
            f"Unsupported file type {content_type!r} for {filename}. "
            f"Allowed: {', '.join(settings.RECEIPT_ALLOWED_TYPES)}"
        )
    if size == 0:
        raise UnsupportedReceiptError(f"{filename} is empty")
    if size > settings.RECEIPT_MAX_BYTES:
        raise ReceiptTooLargeError(
            f"{filename} is {size} bytes; the limit is {settings.RECEIPT_MAX_BYTES} bytes"
        )


def upload_receipt_image(user_id: str, receipt_id: str, filename: str, content: bytes, content_type: str) -> Optional[str]:
    """Store the receipt in S3 and return its object key, or None on failure."""
    safe_name = re.sub(r"[^A-Za-z0-9._-]", "_", filename) or "receipt"
    s3_key = f"receipts/{user_id}/{receipt_id}/{safe_name}"
    try:
        s3.upload_fileobj(
            io.BytesIO(content),
            settings.S3_BUCKET_NAME,
            s3_key,
            ExtraArgs={"ContentType": content_type},
        )
        return s3_key
    except ClientError as e:
        logger.error(f"Failed to upload receipt {s3_key}: {str(e)}")
        return None


def delete_receipt_image(s3_key: str) -> bool:
    """Remove a stored receipt image. Returns False if S3 refused."""
    try:
        s3.delete_object(Bucket=settings.S3_BUCKET_NAME, Key=s3_key)
        return True
    except ClientError as e:
        logger.error(f"Failed to delete orphaned receipt {s3_key}: {str(e)}")
        return False
