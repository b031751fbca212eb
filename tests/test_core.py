#!/usr/bin/env python3
"""
Unit tests for ShopReel core modules.
Tests cover: URL parsing, errors, product extraction, database, config,
provider response parsing.
"""

import sys
import os
import json
import tempfile
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

import unittest
from unittest import mock

import jwt

from shopreel.core.constants import (
    DomainStatus, VideoStatus, PublishStatus, ErrorCode,
    DOMAIN_TRANSITIONS, VIDEO_TRANSITIONS, PUBLISH_TRANSITIONS, ENV_SCRAPE_GRAPH_API_KEY,
)
from shopreel.core.url_parse import (
    validate_source_url, normalize_url, parse_input_lines, parse_csv_file,
)
from shopreel.core.error_codes import (
    PipelineError, ValidationError, ProviderError, InternalError,
    NotFoundError, error_message,
)
from shopreel.core.product_extract import extract_products, normalize_record, to_product_rows
from shopreel.core.scrape_graph import normalize_scrape_response
from shopreel.core.kling_video import build_api_token, parse_task_response
from shopreel.core.dailymotion import watch_url
from shopreel.core.security_utils import find_secret, get_secret, truncate_url
from shopreel.core.models_sqlite import Product


class TestURLParsing(unittest.TestCase):
    """Test shop URL validation."""

    def test_valid_https(self):
        self.assertEqual(validate_source_url("  https://shop.example/cat  "),
                         "https://shop.example/cat")

    def test_valid_http_with_query(self):
        url = "http://shop.example/list?page=2"
        self.assertEqual(normalize_url(url), url)

    def test_invalid_urls(self):
        self.assertIsNone(normalize_url(""))
        self.assertIsNone(normalize_url("not a url"))
        self.assertIsNone(normalize_url("ftp://shop.example/"))
        self.assertIsNone(normalize_url("https://"))
        self.assertIsNone(normalize_url("shop.example/cat"))

    def test_validate_raises_on_invalid(self):
        with self.assertRaises(ValidationError) as ctx:
            validate_source_url("javascript:alert(1)")
        self.assertEqual(ctx.exception.code, ErrorCode.VALIDATION)

    def test_parse_input_lines(self):
        text = """
        https://shop.example/cat
        # a comment
        https://other.example/new

        not a url
        https://shop.example/cat
        """
        urls = parse_input_lines(text)
        self.assertEqual(urls, ["https://shop.example/cat", "https://other.example/new"])

    def test_parse_input_lines_empty(self):
        self.assertEqual(parse_input_lines(""), [])
        self.assertEqual(parse_input_lines("   \n\n  "), [])

    def test_parse_csv_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "urls.csv"
            path.write_text("name,url\nShop,https://shop.example/a\nBad,nope\n")
            self.assertEqual(parse_csv_file(path), ["https://shop.example/a"])


class TestErrorCodes(unittest.TestCase):

    def test_subclass_codes(self):
        self.assertEqual(NotFoundError("x").code, ErrorCode.NOT_FOUND)
        self.assertEqual(InternalError("x").code, ErrorCode.INTERNAL)
        self.assertEqual(ProviderError("x").code, ErrorCode.PROVIDER_FAILED)

    def test_explicit_code_wins(self):
        err = ProviderError("boom", code=ErrorCode.SCRAPE_FAILED)
        self.assertEqual(err.code, ErrorCode.SCRAPE_FAILED)
        self.assertIn("ERR_SCRAPE_FAILED", str(err))
        self.assertIsInstance(err, PipelineError)

    def test_error_message(self):
        self.assertEqual(error_message(RuntimeError("bad thing")), "bad thing")
        self.assertEqual(error_message(RuntimeError("")), "Unknown error occurred")
        self.assertEqual(error_message(ProviderError("nope")), "nope")


class TestTransitions(unittest.TestCase):

    def test_domain_terminal_states(self):
        self.assertEqual(DOMAIN_TRANSITIONS[DomainStatus.COMPLETE], set())
        self.assertEqual(DOMAIN_TRANSITIONS[DomainStatus.ERROR], set())
        self.assertNotIn(DomainStatus.ERROR, DOMAIN_TRANSITIONS[DomainStatus.PENDING])

    def test_publish_error_is_retryable(self):
        self.assertIn(PublishStatus.PUBLISHING, PUBLISH_TRANSITIONS[PublishStatus.ERROR])
        self.assertEqual(PUBLISH_TRANSITIONS[PublishStatus.PUBLISHED], set())

    def test_video_error_and_finish_can_restart(self):
        for status in (VideoStatus.ERROR, VideoStatus.FINISH, VideoStatus.UNAVAILABLE):
            self.assertIn(VideoStatus.PROCESSING, VIDEO_TRANSITIONS[status])
        self.assertNotIn(VideoStatus.PROCESSING, VIDEO_TRANSITIONS[VideoStatus.PROCESSING])


class TestProductExtraction(unittest.TestCase):
    """Test normalization of scraped product records."""

    def test_canonical_fields(self):
        record = {"title": "Mug", "description": "A mug", "url": "https://s/mug",
                  "image": ["https://s/mug.jpg"]}
        self.assertEqual(normalize_record(record), {
            "title": "Mug", "description": "A mug", "url": "https://s/mug",
            "images": ["https://s/mug.jpg"],
        })

    def test_alternate_fields(self):
        record = {"product_title": "Cap", "product_url": "https://s/cap",
                  "product_image": ["https://s/cap1.jpg", "https://s/cap2.jpg"],
                  "product_description": "Blue cap"}
        result = normalize_record(record)
        self.assertEqual(result["title"], "Cap")
        self.assertEqual(result["description"], "Blue cap")
        self.assertEqual(result["images"], ["https://s/cap1.jpg", "https://s/cap2.jpg"])

    def test_description_falls_back_to_title(self):
        record = {"title": "Mug", "description": "", "url": "https://s/mug",
                  "image": ["https://s/mug.jpg"]}
        self.assertEqual(normalize_record(record)["description"], "Mug")
        del record["description"]
        self.assertEqual(normalize_record(record)["description"], "Mug")

    def test_invalid_records(self):
        self.assertIsNone(normalize_record({"title": "x", "url": "u"}))
        self.assertIsNone(normalize_record({"title": "x", "url": "u", "image": []}))
        self.assertIsNone(normalize_record({"title": "", "url": "u", "image": ["i"]}))
        self.assertIsNone(normalize_record({"title": "x", "image": ["i"]}))
        self.assertIsNone(normalize_record({"title": "x", "url": "u", "image": "i.jpg"}))
        self.assertIsNone(normalize_record("garbage"))

    def test_extract_drops_invalid(self):
        response = {"products": [
            {"title": "Mug", "url": "https://s/mug", "image": ["https://s/mug.jpg"]},
            {"title": "Cap", "url": "https://s/cap"},
        ]}
        products = extract_products(response)
        self.assertEqual(len(products), 1)
        self.assertEqual(products[0]["title"], "Mug")

    def test_extract_empty(self):
        self.assertEqual(extract_products({}), [])
        self.assertEqual(extract_products({"products": []}), [])

    def test_to_product_rows_defaults(self):
        rows = to_product_rows(7, [{"title": "Mug", "description": "Mug",
                                    "url": "https://s/mug", "images": ["i"]}])
        self.assertEqual(rows[0].domain_id, 7)
        self.assertEqual(rows[0].video_status, VideoStatus.UNAVAILABLE)
        self.assertEqual(rows[0].publish_status, PublishStatus.NOT_PUBLISHED)


class TestScrapeResponse(unittest.TestCase):

    def test_top_level_products(self):
        resp = normalize_scrape_response({"request_id": "r1", "products": [{"title": "a"}]})
        self.assertEqual(resp["products"], [{"title": "a"}])
        self.assertEqual(resp["request_id"], "r1")

    def test_nested_result_products(self):
        resp = normalize_scrape_response({"result": {"products": [{"title": "b"}]}})
        self.assertEqual(resp["products"], [{"title": "b"}])

    def test_string_payload(self):
        resp = normalize_scrape_response(json.dumps({"result": {"products": []}}))
        self.assertEqual(resp["products"], [])

    def test_garbage_string_raises(self):
        with self.assertRaises(ProviderError):
            normalize_scrape_response("<html>")

    def test_malformed_products_kept_for_extraction(self):
        resp = normalize_scrape_response({"products": "oops"})
        self.assertEqual(resp["products"], "oops")
        with self.assertRaises(ValueError):
            extract_products(resp)


class TestKlingParsing(unittest.TestCase):

    def test_token_claims(self):
        token = build_api_token("ak", "sk", now=1_700_000_000)
        claims = jwt.decode(token, "sk", algorithms=["HS256"],
                            options={"verify_exp": False, "verify_nbf": False})
        self.assertEqual(claims["iss"], "ak")
        self.assertEqual(claims["exp"], 1_700_000_000 + 1800)
        self.assertEqual(claims["nbf"], 1_700_000_000 - 5)

    def test_parse_succeeded_task(self):
        task = parse_task_response({
            "code": 0, "message": "SUCCEED",
            "data": {"task_id": "t1", "task_status": "succeed",
                     "task_result": {"videos": [{"id": "v", "url": "https://cdn.example/v1.mp4"}]}},
        })
        self.assertTrue(task.accepted)
        self.assertEqual(task.video_url, "https://cdn.example/v1.mp4")

    def test_parse_rejected_task(self):
        task = parse_task_response({"code": 1201, "message": "bad image", "data": None})
        self.assertFalse(task.accepted)
        self.assertEqual(task.message, "bad image")
        self.assertIsNone(task.task_id)

    def test_missing_task_id_not_accepted(self):
        task = parse_task_response({"code": 0, "data": {"task_status": "submitted"}})
        self.assertFalse(task.accepted)


class TestSecrets(unittest.TestCase):

    def test_env_wins(self):
        with mock.patch.dict(os.environ, {ENV_SCRAPE_GRAPH_API_KEY: "key"}):
            self.assertEqual(get_secret(ENV_SCRAPE_GRAPH_API_KEY), "key")

    def test_missing_secret(self):
        with mock.patch.dict(os.environ, {ENV_SCRAPE_GRAPH_API_KEY: ""}), \
                mock.patch("shopreel.core.security_utils.keychain_get_secret",
                           return_value=None):
            self.assertIsNone(find_secret(ENV_SCRAPE_GRAPH_API_KEY))
            with self.assertRaises(ProviderError) as ctx:
                get_secret(ENV_SCRAPE_GRAPH_API_KEY)
            self.assertEqual(ctx.exception.code, ErrorCode.MISSING_CREDENTIALS)

    def test_truncate_url(self):
        self.assertEqual(truncate_url(None), "")
        self.assertEqual(truncate_url("https://a"), "https://a")
        self.assertTrue(truncate_url("https://" + "a" * 100).endswith("..."))


class TestDatabase(unittest.TestCase):
    """Test SQLite database operations."""

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.db_path = Path(self.tmpdir.name) / "test.db"
        from shopreel.core.db_sqlite import Database
        self.db = Database(self.db_path)

    def tearDown(self):
        self.db.close()
        self.tmpdir.cleanup()

    def _add_product(self, domain_id, **fields):
        row = Product(id=None, domain_id=domain_id, title="Mug", description="Mug",
                      url="https://s/mug", images=["https://s/mug.jpg"])
        product = self.db.insert_products([row])[0]
        if fields:
            self.db.update_product(product.id, **fields)
        return self.db.get_product(product.id)

    def test_create_domain(self):
        domain = self.db.create_domain("https://shop.example/cat")
        self.assertIsInstance(domain.id, int)
        self.assertEqual(domain.status, DomainStatus.PENDING)
        self.assertIsNotNone(domain.created_at)

    def test_update_domain_status(self):
        domain = self.db.create_domain("https://shop.example/cat")
        self.db.update_domain(domain.id, status=DomainStatus.PROCESSING)
        self.assertEqual(self.db.get_domain(domain.id).status, DomainStatus.PROCESSING)

    def test_unknown_status_rejected(self):
        domain = self.db.create_domain("https://shop.example/cat")
        with self.assertRaises(InternalError):
            self.db.update_domain(domain.id, status="exploded")
        product = self._add_product(domain.id)
        with self.assertRaises(InternalError):
            self.db.update_product(product.id, video_status="done")

    def test_unknown_status_in_row_rejected(self):
        domain = self.db.create_domain("https://shop.example/cat")
        self.db.conn.execute("UPDATE domains SET status = 'weird' WHERE id = ?", (domain.id,))
        self.db.conn.commit()
        with self.assertRaises(InternalError):
            self.db.get_domain(domain.id)

    def test_unknown_column_rejected(self):
        domain = self.db.create_domain("https://shop.example/cat")
        with self.assertRaises(InternalError):
            self.db.update_domain(domain.id, url="https://elsewhere.example")

    def test_insert_products_roundtrip(self):
        domain = self.db.create_domain("https://shop.example/cat")
        product = self._add_product(domain.id)
        self.assertEqual(product.images, ["https://s/mug.jpg"])
        self.assertEqual(product.video_status, VideoStatus.UNAVAILABLE)
        self.assertEqual(product.publish_status, PublishStatus.NOT_PUBLISHED)
        self.assertEqual(len(self.db.get_products_by_domain(domain.id)), 1)

    def test_delete_domain_cascades(self):
        domain = self.db.create_domain("https://shop.example/cat")
        product = self._add_product(domain.id)
        self.assertTrue(self.db.delete_domain(domain.id))
        self.assertIsNone(self.db.get_domain(domain.id))
        self.assertIsNone(self.db.get_product(product.id))
        self.assertFalse(self.db.delete_domain(domain.id))

    def test_delete_product(self):
        domain = self.db.create_domain("https://shop.example/cat")
        keep = self._add_product(domain.id)
        gone = self._add_product(domain.id)
        self.assertTrue(self.db.delete_product(gone.id))
        self.assertFalse(self.db.delete_product(gone.id))
        self.assertEqual([p.id for p in self.db.get_products_by_domain(domain.id)], [keep.id])

    def test_domain_with_products(self):
        domain = self.db.create_domain("https://shop.example/cat")
        self._add_product(domain.id)
        self._add_product(domain.id)
        result = self.db.get_domain_with_products(domain.id)
        self.assertEqual(len(result.products), 2)
        self.assertIsNone(self.db.get_domain_with_products(9999))

    def test_claim_video_generation_once(self):
        domain = self.db.create_domain("https://shop.example/cat")
        product = self._add_product(domain.id, video_task_id="old")
        self.assertTrue(self.db.claim_video_generation(product.id))
        self.assertFalse(self.db.claim_video_generation(product.id))
        stored = self.db.get_product(product.id)
        self.assertEqual(stored.video_status, VideoStatus.PROCESSING)
        self.assertIsNone(stored.video_task_id)

    def test_claim_video_refused_when_published(self):
        domain = self.db.create_domain("https://shop.example/cat")
        product = self._add_product(domain.id, video_status=VideoStatus.FINISH,
                                    video_url="https://cdn/v.mp4",
                                    publish_status=PublishStatus.PUBLISHED,
                                    publish_id="x1")
        self.assertFalse(self.db.claim_video_generation(product.id))

    def test_claim_publish_rules(self):
        domain = self.db.create_domain("https://shop.example/cat")
        product = self._add_product(domain.id)
        self.assertFalse(self.db.claim_publish(product.id))  # no video yet
        self.db.update_product(product.id, video_status=VideoStatus.FINISH,
                               video_url="https://cdn/v.mp4")
        self.assertTrue(self.db.claim_publish(product.id))
        self.assertFalse(self.db.claim_publish(product.id))  # already publishing
        self.db.update_product(product.id, publish_status=PublishStatus.ERROR)
        self.assertTrue(self.db.claim_publish(product.id))

    def test_apply_video_poll_only_matches_polled_task(self):
        domain = self.db.create_domain("https://shop.example/cat")
        product = self._add_product(domain.id, video_status=VideoStatus.PROCESSING,
                                    video_task_id="t2")
        self.assertFalse(self.db.apply_video_poll(product.id, "t1", VideoStatus.FINISH, "u"))
        self.assertTrue(self.db.apply_video_poll(product.id, "t2", VideoStatus.FINISH, "u"))
        self.assertEqual(self.db.get_product(product.id).video_url, "u")

    def test_regeneration_claim_clears_previous_video(self):
        domain = self.db.create_domain("https://shop.example/cat")
        product = self._add_product(domain.id, video_status=VideoStatus.FINISH,
                                    video_url="https://cdn/old.mp4", video_task_id="t1")
        self.assertTrue(self.db.claim_video_generation(product.id))
        stored = self.db.get_product(product.id)
        self.assertIsNone(stored.video_url)
        self.assertIsNone(stored.video_task_id)

    def test_transition_product_guards_source_status(self):
        domain = self.db.create_domain("https://shop.example/cat")
        product = self._add_product(domain.id, video_status=VideoStatus.FINISH,
                                    video_url="https://cdn/v.mp4",
                                    publish_status=PublishStatus.PUBLISHING)
        self.assertTrue(self.db.transition_product(
            product.id, 'publish_status', PublishStatus.PUBLISHING,
            PublishStatus.PUBLISHED, publish_id="x1", publish_url="https://dm/x1"))
        # the row has moved on, so a late error write does nothing
        self.assertFalse(self.db.transition_product(
            product.id, 'publish_status', PublishStatus.PUBLISHING, PublishStatus.ERROR))
        stored = self.db.get_product(product.id)
        self.assertEqual(stored.publish_status, PublishStatus.PUBLISHED)
        self.assertEqual(stored.publish_id, "x1")

    def test_transition_product_rejects_illegal_moves(self):
        domain = self.db.create_domain("https://shop.example/cat")
        product = self._add_product(domain.id)
        with self.assertRaises(InternalError):
            self.db.transition_product(product.id, 'video_status',
                                       VideoStatus.UNAVAILABLE, VideoStatus.FINISH)
        with self.assertRaises(InternalError):
            self.db.transition_product(product.id, 'publish_status',
                                       PublishStatus.PUBLISHED, PublishStatus.PUBLISHING)
        with self.assertRaises(InternalError):
            self.db.apply_video_poll(product.id, "t1", VideoStatus.UNAVAILABLE, None)
        self.assertEqual(self.db.get_product(product.id).video_status, VideoStatus.UNAVAILABLE)


class TestConfig(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.path = Path(self.tmpdir.name) / "config.json"

    def tearDown(self):
        self.tmpdir.cleanup()

    def test_defaults(self):
        from shopreel.core.config import AppConfig
        config = AppConfig(self.path)
        self.assertEqual(config.get('kling_mode'), 'pro')
        self.assertEqual(config.get('scrape_scrolls'), 2)

    def test_clamping(self):
        from shopreel.core.config import AppConfig
        config = AppConfig(self.path)
        config.set('request_timeout_sec', 10_000)
        self.assertEqual(config.request_timeout, 600)
        config.set('kling_cfg_scale', "abc")
        self.assertEqual(config.get('kling_cfg_scale'), 0.5)
        config.set('kling_duration', 5)
        self.assertEqual(config.get('kling_duration'), '5')
        config.set('kling_mode', 'ultra')
        self.assertEqual(config.get('kling_mode'), 'pro')

    def test_persisted_and_reloaded(self):
        from shopreel.core.config import AppConfig
        AppConfig(self.path).set('scrape_scrolls', 4)
        self.assertEqual(AppConfig(self.path).get('scrape_scrolls'), 4)

    def test_unknown_key(self):
        from shopreel.core.config import AppConfig
        with self.assertRaises(KeyError):
            AppConfig(self.path).set('api_key', 'secret')


class TestDailymotionHelpers(unittest.TestCase):

    def test_watch_url(self):
        self.assertEqual(watch_url("x8abc"), "https://www.dailymotion.com/video/x8abc")


if __name__ == "__main__":
    unittest.main()
