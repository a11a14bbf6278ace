from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from config import config
from database import Store
from services.ban_requests import BanRequestService
from services.fanout import FanoutRouter
from services.groups import GroupService
from services.messaging import MessagingPipeline
from services.notifications import NotificationAggregator, utc_now
from services.social import SocialService
from services.sweeper import ChangeFeedListener, ExpirySweeper


@dataclass
class Services:
    store: Store
    transport: object
    notifier: NotificationAggregator
    router: FanoutRouter
    messaging: MessagingPipeline
    social: SocialService
    groups: GroupService
    ban_requests: BanRequestService
    sweeper: ExpirySweeper
    change_feed: ChangeFeedListener

    async def start_background(self) -> None:
        self.sweeper.start()
        if config.NOTIFICATION_CHANGE_FEED:
            self.change_feed.start()

    async def stop_background(self) -> None:
        await self.change_feed.stop()
        await self.sweeper.stop()


def build_services(store: Store, transport, clock: Callable[[], datetime] = utc_now) -> Services:
    """Wire every component with the one store and transport it is allowed to use."""
    notifier = NotificationAggregator(store, transport, clock=clock)
    router = FanoutRouter(store, transport, notifier)
    return Services(
        store=store,
        transport=transport,
        notifier=notifier,
        router=router,
        messaging=MessagingPipeline(store, router, clock=clock),
        social=SocialService(store, router, notifier),
        groups=GroupService(store),
        ban_requests=BanRequestService(store, router),
        sweeper=ExpirySweeper(store, transport, clock=clock),
        change_feed=ChangeFeedListener(store, transport),
    )
