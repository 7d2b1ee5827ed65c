"""
Article Reader Module

Ties extraction, segmentation and playback together for one view:
load an article, read it aloud, tear everything down. Starting a new load
always discards the current session first, and a load that was overtaken
by a newer one never replaces the newer result.
"""

import asyncio
from typing import List, Optional

from readaloud.clean_text import TextCleaner
from readaloud.extract_text import Article, ArticleExtractor, ExtractionError
from readaloud.readalong.controller import PlaybackState, SpeechSessionController
from readaloud.readalong.segmenter import Segmenter, Unit
from readaloud.utils import logger


class ArticleReader:
    """
    One reader view: the current article, its units and their playback.

    The view owns the controller's session; close() must be called when
    the view goes away so the shared speech engine is released.
    """

    def __init__(
        self,
        controller: SpeechSessionController,
        extractor: Optional[ArticleExtractor] = None,
        segmenter: Optional[Segmenter] = None,
    ):
        """
        Initialize the reader.

        Args:
            controller: Playback controller (owns the speech engine)
            extractor: Content extractor (a default ArticleExtractor if omitted)
            segmenter: Unit segmenter (configured granularity if omitted)
        """
        self.controller = controller
        self.extractor = extractor or ArticleExtractor()
        self.segmenter = segmenter or Segmenter()
        self.cleaner = TextCleaner()

        self._article: Optional[Article] = None
        self._units: List[Unit] = []
        self._load_token = 0
        self._closed = False

    @property
    def article(self) -> Optional[Article]:
        return self._article

    @property
    def units(self) -> List[Unit]:
        return list(self._units)

    @property
    def state(self) -> PlaybackState:
        return self.controller.state

    @property
    def current_index(self) -> int:
        return self.controller.current_index

    def _begin_load(self) -> int:
        """Discard the current session and hand out a token for the new load."""
        self._load_token += 1
        self.controller.reset()
        self._article = None
        self._units = []
        return self._load_token

    def _accept(self, token: int, article: Article) -> Optional[Article]:
        if token != self._load_token or self._closed:
            logger.debug(f"Discarding superseded extraction of {article.url or article.title!r}")
            return None

        self._article = article
        self._units = self.segmenter.split(article.content)
        logger.info(
            f"Split '{article.title or 'article'}' into {len(self._units)} "
            f"{self.segmenter.granularity.value} units"
        )
        return article

    def load(self, url: str) -> Optional[Article]:
        """
        Extract and segment the article at ``url``.

        Returns:
            The article, or None if a newer load superseded this one

        Raises:
            ExtractionError: if the extraction fails
        """
        token = self._begin_load()
        article = self.extractor.extract(url)
        return self._accept(token, article)

    async def load_async(self, url: str) -> Optional[Article]:
        """Like load(), but runs the blocking extraction in a worker thread."""
        token = self._begin_load()
        loop = asyncio.get_running_loop()
        try:
            article = await loop.run_in_executor(None, self.extractor.extract, url)
        except ExtractionError:
            if token != self._load_token:
                logger.debug(f"Ignoring failure of superseded extraction of {url!r}")
                return None
            raise
        return self._accept(token, article)

    def load_text(self, content: str, title: str = "", excerpt: str = "") -> Article:
        """Use local text as the article (cleaned the same way as web content)."""
        token = self._begin_load()
        cleaned = self.cleaner.clean(content)
        article = Article(title=title, content=cleaned, excerpt=excerpt)
        self._accept(token, article)
        return article

    def play(self) -> None:
        """Read the current article from the start (no-op without units)."""
        if self._closed:
            return
        self.controller.start(self._units)

    def pause(self) -> None:
        self.controller.pause()

    def resume(self) -> None:
        self.controller.resume()

    def toggle_pause(self) -> None:
        """Pause while playing, resume while paused."""
        if self.state is PlaybackState.PAUSED:
            self.resume()
        else:
            self.pause()

    def stop(self) -> None:
        self.controller.stop()

    def close(self) -> None:
        """Tear down the view: stop speech, drop the session, release the engine."""
        if self._closed:
            return
        self._closed = True
        self._load_token += 1
        self.controller.reset()
        self._article = None
        self._units = []
        self.controller.engine.close()
