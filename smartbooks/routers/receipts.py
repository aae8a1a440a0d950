"""
Receipts Router
Upload a receipt, store it, and return extracted fields to pre-fill a transaction
"""
import logging
from uuid import uuid4

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

from smartbooks.core.security import get_current_user_id
from smartbooks.db import dynamo
from smartbooks.models.receipt import ReceiptInDB, ReceiptPrefill, ReceiptPublic
from smartbooks.utils.receipts import (
    ExtractionFailedError,
    ReceiptExtractor,
    ReceiptTooLargeError,
    UnsupportedReceiptError,
    delete_receipt_image,
    get_receipt_extractor,
    upload_receipt_image,
    validate_upload,
)

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/", response_model=ReceiptPublic, status_code=status.HTTP_201_CREATED)
def upload_receipt(
    file: UploadFile = File(...),
    user_id: str = Depends(get_current_user_id),
    extractor: ReceiptExtractor = Depends(get_receipt_extractor),
):
    filename = file.filename or "receipt"
    content = file.file.read()

    try:
        validate_upload(filename, file.content_type, len(content))
    except UnsupportedReceiptError as e:
        raise HTTPException(status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE, detail=str(e))
    except ReceiptTooLargeError as e:
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=str(e))

    try:
        extraction = extractor.extract(filename, content)
    except ExtractionFailedError as e:
        logger.error(f"Receipt extraction failed for user {user_id}: {str(e)}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))

    receipt_id = str(uuid4())
    s3_key = upload_receipt_image(user_id, receipt_id, filename, content, file.content_type)
    if not s3_key:
        raise HTTPException(status_code=500, detail="Failed to store receipt")

    receipt_db = ReceiptInDB(
        user_id=user_id,
        receipt_id=receipt_id,
        file_path=s3_key,
        extracted_text=extraction.text,
        extracted_amount=extraction.amount,
        extracted_date=extraction.date,
        confidence_score=extraction.confidence,
    )
    if not dynamo.put_receipt(receipt_db.model_dump()):
        logger.error(f"Receipt record {receipt_id} not saved; removing {s3_key}")
        delete_receipt_image(s3_key)
        raise HTTPException(status_code=500, detail="Failed to save receipt")

    logger.info(f"Receipt {receipt_id} processed for user {user_id} (confidence {extraction.confidence})")
    return ReceiptPublic(
        **receipt_db.model_dump(exclude={"user_id", "created_at"}),
        vendor=extraction.vendor,
        prefill=ReceiptPrefill(**extraction.to_prefill()),
    )
