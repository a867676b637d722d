import logging
from dataclasses import dataclass, field, replace
from typing import Callable, List, Optional, Sequence

from .Errors import ConfigurationError, SegmentEnrichmentFailure
from .models import FetchStatus, ImageMap, ImageRecord, Segment

logger = logging.getLogger(f"broll.{__name__}")

# publish(segments, images, index) is called after every status transition of segment `index`.
ProgressCallback = Callable[[List[Segment], ImageMap, int], None]


@dataclass
class EnrichmentResult:
    segments: List[Segment]
    images: ImageMap
    failures: List[SegmentEnrichmentFailure] = field(default_factory=list)
    completed: bool = True


class VisualEnrichmentPipeline:
    """
    Attaches a keyword and a stock image to each segment, one segment at a time.

    For every segment the pipeline asks the suggester for a keyword, then asks
    the image search for a URL. Segments are processed strictly in order so the
    published intermediate state only ever moves forward. Service errors are
    isolated to their segment and never abort the run.
    """

    def __init__(self, suggester, image_search):
        missing = []
        if suggester is None:
            missing.append("visual suggestion service (GOOGLE_API_KEY)")
        if image_search is None:
            missing.append("image lookup service (PIXABAY_API_KEY)")
        if missing:
            raise ConfigurationError(f"Cannot process visuals: missing {' and '.join(missing)}.")
        self._suggester = suggester
        self._image_search = image_search

    async def run(self, segments: Sequence[Segment], publish: Optional[ProgressCallback] = None,
                  is_current: Optional[Callable[[], bool]] = None) -> EnrichmentResult:
        """
        Enriches all segments.

        Args:
            segments (Sequence[Segment]): Segments from the sentence segmenter. Not mutated.
            publish (Optional[ProgressCallback]): Receives a snapshot after each step.
            is_current (Optional[Callable[[], bool]]): Checked after every service call. When it
                returns False the run stops and its result is marked incomplete.

        Returns:
            EnrichmentResult: Updated segment copies, the image map keyed by segment index,
                              and the per-segment failures.
        """
        updated = [replace(s, words=list(s.words)) for s in segments]
        result = EnrichmentResult(segments=updated, images={})
        total = len(updated)

        def _publish(index: int) -> None:
            if publish is not None:
                publish([replace(s) for s in updated], dict(result.images), index)

        def _still_current() -> bool:
            return is_current is None or is_current()

        for i, segment in enumerate(updated):
            if not segment.text.strip():
                segment.fetch_status = FetchStatus.NO_IMAGE_FOUND
                segment.visual_query = None
                result.images[i] = None
                _publish(i)
                continue

            logger.info(f"Visuals: Suggesting for segment {i + 1}/{total}...")
            segment.fetch_status = FetchStatus.SUGGESTING
            _publish(i)

            suggestion = await self._suggest(i, segment, result)
            if not _still_current():
                logger.debug("Enrichment superseded by a newer round. Stopping.")
                result.completed = False
                return result
            segment.visual_query = suggestion

            if not suggestion:
                segment.fetch_status = FetchStatus.NO_IMAGE_FOUND
                result.images[i] = None
                _publish(i)
                continue

            logger.info(f"Visuals: Fetching image for segment {i + 1} ('{suggestion}')...")
            segment.fetch_status = FetchStatus.FETCHING
            _publish(i)

            image_url = await self._fetch(i, suggestion, result)
            if not _still_current():
                logger.debug("Enrichment superseded by a newer round. Stopping.")
                result.completed = False
                return result

            if image_url:
                segment.fetch_status = FetchStatus.FETCHED
                result.images[i] = ImageRecord.from_source(image_url)
            else:
                segment.fetch_status = FetchStatus.FAILED_FETCH
                result.images[i] = None
                if not any(f.index == i for f in result.failures):
                    result.failures.append(SegmentEnrichmentFailure(i, "fetch", f"no image for '{suggestion}'"))
            _publish(i)

        fetched = sum(1 for s in updated if s.fetch_status == FetchStatus.FETCHED)
        logger.info(f"✅ Visual processing complete: {fetched}/{total} segments have images.")
        return result

    async def _suggest(self, index: int, segment: Segment, result: EnrichmentResult) -> Optional[str]:
        try:
            return await self._suggester.suggest(segment.text)
        except Exception as e:
            logger.warning(f"⚠️ Suggestion failed for segment {index + 1}: {e}")
            result.failures.append(SegmentEnrichmentFailure(index, "suggestion", str(e)))
            return None

    async def _fetch(self, index: int, query: str, result: EnrichmentResult) -> Optional[str]:
        try:
            return await self._image_search.search(query)
        except Exception as e:
            logger.warning(f"⚠️ Image lookup failed for segment {index + 1}: {e}")
            result.failures.append(SegmentEnrichmentFailure(index, "fetch", str(e)))
            return None
