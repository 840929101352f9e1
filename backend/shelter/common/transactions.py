# shelter/common/transactions.py
import logging
import time

from django.conf import settings
from django.db import OperationalError, transaction

from shelter.common.exceptions import ConflictExhausted, TransactionConflict

logger = logging.getLogger(__name__)

RETRY_BACKOFF_SEC = 0.05


def run_in_transaction(fn, *args, attempts: int = None, **kwargs):
    """
    fn 을 transaction.atomic() 안에서 실행.
    조건부 쓰기 실패(TransactionConflict) / 락·직렬화 실패(OperationalError)는
    롤백 후 재시도하고, 횟수를 다 쓰면 ConflictExhausted 로 올린다.
    fn 은 매번 처음부터 다시 읽으므로 재시도해도 상태가 꼬이지 않음.
    """
    attempts = attempts or settings.TX_MAX_ATTEMPTS
    for attempt in range(1, attempts + 1):
        try:
            with transaction.atomic():
                return fn(*args, **kwargs)
        except (TransactionConflict, OperationalError) as exc:
            if attempt >= attempts:
                logger.error(
                    "transaction %s failed after %d attempts: %s",
                    getattr(fn, "__name__", fn),
                    attempts,
                    exc,
                )
                raise ConflictExhausted() from exc
            logger.warning(
                "transaction %s conflict (attempt %d/%d): %s",
                getattr(fn, "__name__", fn),
                attempt,
                attempts,
                exc,
            )
            time.sleep(RETRY_BACKOFF_SEC * attempt)
