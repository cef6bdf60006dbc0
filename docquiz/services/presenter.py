"""Progressive reveal of finished replies into a transcript."""
import asyncio
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from docquiz.models.session import Message, Role, Transcript


@dataclass(frozen=True)
class RevealChunk:
    """Characters added to the revealed entry by one step."""

    delta: str
    shown: int
    done: bool


class Reveal:
    """
    One reply being written into the transcript a character at a time.

    The first character is written when the reveal is created; each
    scheduling tick afterwards extends the same entry by one character.
    Once the full text is shown the entry is never written again.
    """

    def __init__(self, transcript: Transcript, text: str, interval_seconds: float = 0.0):
        self.text = text
        self.interval_seconds = interval_seconds
        self._transcript = transcript
        self._shown = min(1, len(text))
        # An empty reply adds nothing to the transcript
        self._index = transcript.append(Message(role=Role.ASSISTANT, text=text[:1])) if text else None
        self._done = False
        self._finished = asyncio.Event()
        self._changed = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

        if self._shown >= len(text):
            self._finish()

    @property
    def done(self) -> bool:
        return self._done

    @property
    def shown(self) -> int:
        return self._shown

    def start(self) -> "Reveal":
        """Schedule the stepping task on the running loop."""
        if not self._done and self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._run())
        return self

    async def _run(self):
        while self._shown < len(self.text):
            await asyncio.sleep(self.interval_seconds)
            if self._done:
                return
            self._shown += 1
            self._transcript.rewrite(self._index, self.text[:self._shown])
            self._notify()
        self._finish()

    def skip_to_end(self) -> None:
        """Show the full text at once and stop stepping. No-op once done."""
        if self._done:
            return
        self._shown = len(self.text)
        self._transcript.rewrite(self._index, self.text)
        self._finish()
        if self._task is not None and not self._task.done():
            self._task.cancel()

    def _finish(self):
        self._done = True
        self._finished.set()
        self._notify()

    def _notify(self):
        # Waiters hold a reference to the old event; swap before setting
        changed, self._changed = self._changed, asyncio.Event()
        changed.set()

    async def wait(self) -> None:
        """Wait until the full text is shown."""
        await self._finished.wait()

    async def chunks(self) -> AsyncIterator[RevealChunk]:
        """Yield one chunk per step, starting with everything shown so far."""
        sent = 0
        while True:
            changed = self._changed
            shown, done = self._shown, self._done
            if shown > sent or done:
                yield RevealChunk(delta=self.text[sent:shown], shown=shown, done=done)
                sent = shown
                if done:
                    return
            await changed.wait()


class IncrementalPresenter:
    """Runs at most one reveal at a time for a session."""

    def __init__(self, interval_seconds: float = 0.0):
        self.interval_seconds = interval_seconds
        self._active: Optional[Reveal] = None

    @property
    def active(self) -> Optional[Reveal]:
        return self._active

    @property
    def in_progress(self) -> bool:
        return self._active is not None and not self._active.done

    def start(self, transcript: Transcript, text: str) -> Reveal:
        """
        Begin revealing ``text`` as a new assistant entry.

        A reveal that is still running is completed first so the two never
        write to the transcript at the same time.
        """
        self.complete()
        self._active = Reveal(transcript, text, self.interval_seconds).start()
        return self._active

    def complete(self) -> None:
        """Jump the active reveal, if any, to its full text."""
        if self._active is not None:
            self._active.skip_to_end()

    skip_to_end = complete
