"""Batch classification of raw emails."""

import logging
import time
from typing import Any, Callable, Iterator, Protocol, Sequence, TypeVar, Union

from .classifier import ClassifierError, ClassifierResponseError
from .models import ClassificationResult, RawEmail

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Classifier(Protocol):
    def classify(
        self, emails: Sequence[RawEmail]
    ) -> Union[ClassificationResult, Sequence[Any]]: ...


def batched(items: Sequence[T], size: int) -> Iterator[list[T]]:
    """Yield consecutive chunks of at most size items."""
    if size < 1:
        raise ValueError(f"Batch size must be at least 1, got {size}")
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


def classify_batch(
    classifier: Classifier, batch: Sequence[RawEmail], label: str
) -> tuple[ClassificationResult, ...]:
    """Classify one batch, returning no results if anything goes wrong."""
    try:
        results = classifier.classify(batch)
    except ClassifierResponseError as e:
        logger.warning(f"{label}: {e}. Response preview: {e.preview!r}")
        return ()
    except ClassifierError as e:
        logger.warning(f"{label}: {e}")
        return ()
    except Exception as e:
        logger.error(f"{label}: classification failed: {e}")
        return ()

    if results is None:
        return ()
    if isinstance(results, (ClassificationResult, dict)):
        results = [results]
    return tuple(
        result if isinstance(result, ClassificationResult)
        else ClassificationResult.model_validate(result)
        for result in results
        if isinstance(result, (ClassificationResult, dict))
    )


def classify_emails(
    emails: Sequence[RawEmail],
    classifier: Classifier,
    batch_size: int = 5,
    delay_seconds: float = 1.0,
    sleep: Callable[[float], None] = time.sleep,
) -> list[ClassificationResult]:
    """Classify emails in order, one batch at a time.

    A failed batch contributes no results and the remaining batches still
    run. A fixed pause follows every batch except the last, so N batches
    take N - 1 pauses. Only job-related results are returned.
    """
    batches = list(batched(emails, batch_size))
    collected: tuple[ClassificationResult, ...] = ()

    for number, batch in enumerate(batches, start=1):
        label = f"Batch {number}/{len(batches)}"
        logger.info(f"{label}: classifying {len(batch)} emails")
        collected = collected + classify_batch(classifier, batch, label)

        if number < len(batches) and delay_seconds > 0:
            sleep(delay_seconds)

    job_related = [result for result in collected if result.is_job_related]
    logger.info(
        f"Classification complete: {len(collected)} results, "
        f"{len(job_related)} job related"
    )
    return job_related
