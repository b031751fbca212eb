"""
Wiring: one Database, three provider clients and the controllers built on them.
"""

from dataclasses import dataclass

from shopreel.core.config import AppConfig
from shopreel.core.dailymotion import DailymotionClient
from shopreel.core.db_sqlite import Database
from shopreel.core.domain_pipeline import DomainPipeline
from shopreel.core.kling_video import KlingClient
from shopreel.core.products import ProductController
from shopreel.core.publish_jobs import PublishJobController
from shopreel.core.scrape_graph import ScrapeGraphClient
from shopreel.core.video_jobs import VideoJobController


@dataclass
class Services:
    db: Database
    scraper: ScrapeGraphClient
    domains: DomainPipeline
    products: ProductController
    videos: VideoJobController
    publishing: PublishJobController

    def close(self):
        self.db.close()


def build_services(config: AppConfig, db: Database | None = None) -> Services:
    db = db or Database(config.db_path)
    timeout = config.request_timeout

    scraper = ScrapeGraphClient(number_of_scrolls=config.get('scrape_scrolls'),
                                timeout=timeout)
    kling = KlingClient(mode=config.get('kling_mode'),
                        duration=config.get('kling_duration'),
                        cfg_scale=config.get('kling_cfg_scale'),
                        timeout=timeout)
    dailymotion = DailymotionClient(timeout=timeout)

    return Services(
        db=db,
        scraper=scraper,
        domains=DomainPipeline(db, scraper),
        products=ProductController(db),
        videos=VideoJobController(db, kling),
        publishing=PublishJobController(db, dailymotion),
    )
