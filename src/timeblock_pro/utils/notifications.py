import subprocess

from loguru import logger
from rich.console import Console

from timeblock_pro.settings import Settings, settings
from timeblock_pro.utils.events import (
    BlockEnded,
    BlockStarted,
    EventBus,
    Subscription,
    TimerCompleted,
)
from timeblock_pro.utils.time import to_12_hour


def send_notification(summary: str, body: str, app_name: str | None = None):
    """Sends a desktop notification using notify-send."""
    logger.info(f"Sending notification: {summary} | {body}")
    cmd = ["notify-send", summary, body, "-a", app_name or settings.app_name]
    try:
        subprocess.run(cmd, check=False)
    except FileNotFoundError:
        logger.error("notify-send not found. Install libnotify-bin.")
    except Exception as e:
        logger.error(f"Failed to send notification: {e}")


class NotificationSink:
    """Renders block transitions and timer completion as desktop notifications and a chime."""

    def __init__(
        self,
        bus: EventBus,
        config: Settings | None = None,
        console: Console | None = None,
        notify=send_notification,
    ):
        self.config = config or settings
        self.console = console or Console()
        self._notify = notify
        self._subscriptions: list[Subscription] = [
            bus.subscribe(BlockStarted, self.on_block_started),
            bus.subscribe(BlockEnded, self.on_block_ended),
            bus.subscribe(TimerCompleted, self.on_timer_completed),
        ]

    def _chime(self):
        if self.config.audio_notifications:
            self.console.bell()

    def _fields(self, event) -> dict:
        block = event.snapshot.time_block
        return {
            "name": event.snapshot.block_type.name,
            "start_time": to_12_hour(block.start_time),
            "end_time": to_12_hour(block.end_time),
        }

    def on_block_started(self, event: BlockStarted):
        fields = self._fields(event)
        self._chime()
        self._notify(
            self.config.notify_start_summary.format(**fields),
            self.config.notify_start_body.format(**fields),
        )

    def on_block_ended(self, event: BlockEnded):
        fields = self._fields(event)
        self._chime()
        self._notify(
            self.config.notify_end_summary.format(**fields),
            self.config.notify_end_body.format(**fields),
        )

    def on_timer_completed(self, event: TimerCompleted):
        self._chime()
        self._notify("Focus session complete", "Time's up. Take a short break.")

    def close(self):
        for sub in self._subscriptions:
            sub.close()
        self._subscriptions = []
