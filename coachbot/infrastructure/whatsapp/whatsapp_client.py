"""
WhatsApp Client - Selenium-Based WhatsApp Web Automation
=========================================================
"""

import base64
import logging
import mimetypes
import time
import random
import re
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional, List, Tuple

from selenium import webdriver
from selenium.webdriver.common.action_chains import ActionChains
from selenium.webdriver.common.by import By
from selenium.webdriver.common.keys import Keys
from selenium.webdriver.chrome.service import Service as ChromeService
from selenium.webdriver.support.ui import WebDriverWait
from selenium.webdriver.support import expected_conditions as EC
from selenium.common.exceptions import (
    NoSuchElementException,
    TimeoutException,
    WebDriverException,
    StaleElementReferenceException,
)
from webdriver_manager.chrome import ChromeDriverManager

from ..config import get_settings
from .models import IncomingMessage, MediaPayload, parse_message_id

logger = logging.getLogger(__name__)


class WhatsAppClientError(Exception):
    """Base exception for WhatsApp client errors."""
    pass


class WhatsAppBlockedError(WhatsAppClientError):
    """Raised when WhatsApp shows blocking/warning indicators."""
    pass


# Reads the blob: media (image, video or voice note) inside a message row
# and hands back a data: URL
_FETCH_BLOB_SCRIPT = """
const messageId = arguments[0];
const done = arguments[arguments.length - 1];
const row = document.querySelector('div[data-id="' + messageId + '"]');
const media = row && row.querySelector(
  'img[src^="blob:"], video[src^="blob:"], audio[src^="blob:"]'
);
if (!media) { done(null); return; }
fetch(media.src)
  .then((res) => res.blob())
  .then((blob) => {
    const reader = new FileReader();
    reader.onloadend = () => done({ dataUrl: reader.result, type: blob.type });
    reader.readAsDataURL(blob);
  })
  .catch((err) => done({ error: String(err) }));
"""

# Chrome writes these while a download is still in flight
_PARTIAL_SUFFIXES = (".crdownload", ".tmp", ".part")

_PRE_PLAIN_RE = re.compile(r"\[(?P<first>[^,\]]+),\s*(?P<second>[^\]]+)\]")
_DATE_FORMATS = ["%d/%m/%Y", "%m/%d/%Y", "%d/%m/%y", "%m/%d/%y", "%d.%m.%Y", "%Y-%m-%d"]
_TIME_FORMATS = ["%H:%M", "%I:%M %p"]


def parse_pre_plain_text(pre: str) -> Optional[int]:
    """
    Parse the 'data-pre-plain-text' header into an epoch timestamp.

    WhatsApp renders it as "[12:34, 1/2/2024] Alice: "; some locales swap
    time and date.
    """
    match = _PRE_PLAIN_RE.match((pre or "").strip())
    if not match:
        return None

    first, second = match.group("first").strip(), match.group("second").strip()
    for time_s, date_s in ((first, second), (second, first)):
        for dfmt in _DATE_FORMATS:
            for tfmt in _TIME_FORMATS:
                try:
                    parsed = datetime.strptime(f"{date_s} {time_s}", f"{dfmt} {tfmt}")
                    return int(parsed.timestamp())
                except ValueError:
                    continue
    return None


def find_finished_download(directory: Path, known: Iterable[str]) -> Optional[Path]:
    """Return a completed file in directory whose name is not in known."""
    if not directory.is_dir():
        return None
    known = set(known)
    for path in sorted(directory.iterdir(), key=lambda p: p.stat().st_mtime):
        if path.name in known or not path.is_file():
            continue
        if path.name.endswith(_PARTIAL_SUFFIXES):
            continue
        return path
    return None


def payload_from_file(path: Path) -> MediaPayload:
    """Read a downloaded file into a MediaPayload that keeps its original name."""
    mimetype, _ = mimetypes.guess_type(path.name)
    return MediaPayload(
        data=base64.b64encode(path.read_bytes()).decode("ascii"),
        mimetype=mimetype or "application/octet-stream",
        filename=path.name,
    )


class WhatsAppClient:
    """
    Selenium-based WhatsApp Web client.
    """

    SELECTORS = {
        "search_box": 'div[contenteditable="true"][data-tab="3"]',
        "message_input": 'footer div[contenteditable="true"][data-tab="10"]',
        "message_input_alt": 'footer div[contenteditable="true"]',

        # Chat list
        "side_pane": '#pane-side',
        "unread_badge": '#pane-side span[aria-label*="unread message"]',

        # Open conversation
        "message_row": '#main div[data-id]',
        "message_meta": 'div[data-pre-plain-text]',
        "message_image": 'img[src^="blob:"]',
        "message_video": 'video[src^="blob:"], span[data-icon="media-play"], span[data-icon="video-pip"]',
        "message_audio": 'audio, span[data-icon="audio-play"], span[data-icon="audio-download"], span[data-icon="ptt-status"]',
        "message_document": 'span[data-icon^="document"]',

        # Attachment download controls
        "media_download": 'span[data-icon="media-download"], span[data-icon="audio-download"]',
        "document_download": 'span[data-icon="audio-download"], span[data-icon="download"], div[title^="Download"]',

        # Reactions
        "react_button": 'span[data-icon="react"]',
        "react_button_alt": 'div[aria-label="React"]',
    }

    TEXT_SELECTORS = [
        'span.selectable-text.copyable-text > span',
        'span.selectable-text.copyable-text',
        'span.selectable-text',
        'span[dir="ltr"]',
    ]

    # First match wins: document rows carry a download icon, video rows a thumbnail
    MEDIA_KINDS = [
        ("document", "message_document"),
        ("video", "message_video"),
        ("image", "message_image"),
        ("audio", "message_audio"),
    ]

    BLOCK_INDICATORS = [
        "temporarily banned",
        "account is temporarily",
        "verify your phone",
        "unusual activity",
    ]

    def __init__(self, headless: Optional[bool] = None):
        settings = get_settings()
        self._settings = settings.whatsapp
        self.current_chat_id: Optional[str] = None

        if headless is None:
            headless = self._settings.headless

        self.driver = self._create_driver(headless)
        self._navigate_to_whatsapp()

    def _create_driver(self, headless: bool) -> webdriver.Chrome:
        """Create and configure Chrome WebDriver."""
        options = webdriver.ChromeOptions()

        if headless:
            options.add_argument("--headless=new")
            logger.warning("Running headless - QR code scanning won't work!")
        else:
            options.add_argument("--start-maximized")

        options.add_argument("--disable-gpu")
        options.add_argument("--no-sandbox")
        options.add_argument("--disable-dev-shm-usage")

        # Persistent profile keeps the WhatsApp session between runs
        profile_dir = self._settings.profile_dir
        options.add_argument(f"--user-data-dir={profile_dir}")
        logger.info(f"Using Chrome profile at: {profile_dir}")

        # Documents are fetched by clicking them, so Chrome must save without asking
        staging_dir = self._settings.download_staging_dir
        staging_dir.mkdir(parents=True, exist_ok=True)
        options.add_experimental_option("prefs", {
            "download.default_directory": str(staging_dir),
            "download.prompt_for_download": False,
            "download.directory_upgrade": True,
        })

        service = ChromeService(ChromeDriverManager().install())
        return webdriver.Chrome(service=service, options=options)

    def _navigate_to_whatsapp(self) -> None:
        """Navigate to WhatsApp Web."""
        self.driver.get("https://web.whatsapp.com/")
        logger.info("Opened WhatsApp Web - please scan QR code if needed")

    def _random_delay(self, min_s: float = 0.3, max_s: float = 1.0) -> None:
        """Add human-like random delay."""
        time.sleep(random.uniform(min_s, max_s))

    def _check_for_blocks(self) -> bool:
        """Check page for blocking/warning indicators."""
        try:
            page_text = self.driver.page_source.lower()
        except WebDriverException:
            return False
        for indicator in self.BLOCK_INDICATORS:
            if indicator in page_text:
                logger.error(f"Block indicator detected: {indicator}")
                return True
        return False

    def wait_for_login(self, timeout: Optional[int] = None) -> bool:
        """Wait for user to scan QR code and WhatsApp to load."""
        timeout = timeout or self._settings.login_timeout
        logger.info(f"Waiting up to {timeout}s for QR code scan...")

        try:
            WebDriverWait(self.driver, timeout).until(
                EC.presence_of_element_located(
                    (By.CSS_SELECTOR, self.SELECTORS["side_pane"])
                )
            )
            logger.info("WhatsApp Web loaded successfully")
            return True
        except TimeoutException:
            logger.error("Timeout waiting for WhatsApp login")
            return False

    # ── Chats ─────────────────────────────────────────────────────

    def open_chat(self, chat_id: str) -> bool:
        """Open a chat by its id ("4917612345678@c.us") via the search box."""
        # Cached id only counts while the rendered rows still belong to that chat
        if chat_id == self.current_chat_id and self._current_chat_from_rows() == chat_id:
            return True

        if self._check_for_blocks():
            raise WhatsAppBlockedError("WhatsApp blocking detected")

        query = chat_id.split("@")[0]
        try:
            search_box = self.driver.find_element(By.CSS_SELECTOR, self.SELECTORS["search_box"])
        except NoSuchElementException:
            logger.error("Could not find chat search box")
            return False

        search_box.click()
        search_box.send_keys(Keys.CONTROL + "a")
        search_box.send_keys(Keys.BACKSPACE)
        search_box.send_keys(query)
        time.sleep(2)
        search_box.send_keys(Keys.ENTER)
        time.sleep(2)

        if self._find_message_input():
            self.current_chat_id = chat_id
            logger.debug(f"Chat opened: {chat_id}")
            return True

        logger.warning(f"Could not verify chat opened for: {chat_id}")
        return False

    def iter_unread_chats(self):
        """
        Yield chat ids of chats showing an unread badge.

        Each chat is opened before its id is yielded, so the caller can read
        its messages right away.
        """
        try:
            badges = self.driver.find_elements(By.CSS_SELECTOR, self.SELECTORS["unread_badge"])
        except WebDriverException as e:
            logger.debug(f"Could not list unread chats: {e}")
            return

        for badge in badges:
            try:
                cell = badge.find_element(
                    By.XPATH, './ancestor::div[@role="listitem" or @role="row"][1]'
                )
                cell.click()
            except (NoSuchElementException, StaleElementReferenceException):
                continue

            self._random_delay(0.8, 1.5)
            chat_id = self._current_chat_from_rows()
            if chat_id:
                self.current_chat_id = chat_id
                yield chat_id

    def _current_chat_from_rows(self) -> Optional[str]:
        for _, data_id in self._get_message_rows():
            _, chat_id = parse_message_id(data_id)
            if chat_id:
                return chat_id
        return None

    # ── Reading ───────────────────────────────────────────────────

    def _get_message_rows(self) -> List[Tuple]:
        """Return (element, data_id) for every message row in the open chat."""
        rows = []
        try:
            elements = self.driver.find_elements(By.CSS_SELECTOR, self.SELECTORS["message_row"])
        except WebDriverException as e:
            logger.debug(f"Could not read message rows: {e}")
            return rows

        for el in elements:
            try:
                data_id = el.get_attribute("data-id") or ""
            except StaleElementReferenceException:
                continue
            if "_" in data_id:
                rows.append((el, data_id))
        return rows

    def _extract_text(self, element) -> str:
        """Extract text content from a message element."""
        for selector in self.TEXT_SELECTORS:
            try:
                for text_el in element.find_elements(By.CSS_SELECTOR, selector):
                    text = text_el.text.strip()
                    if text:
                        return text
            except (NoSuchElementException, StaleElementReferenceException):
                continue
        return ""

    def _extract_timestamp(self, element) -> Optional[int]:
        try:
            meta = element.find_element(By.CSS_SELECTOR, self.SELECTORS["message_meta"])
            return parse_pre_plain_text(meta.get_attribute("data-pre-plain-text") or "")
        except (NoSuchElementException, StaleElementReferenceException):
            return None

    def _media_kind(self, element) -> str:
        """Classify the attachment of a row, "" when it has none."""
        for kind, key in self.MEDIA_KINDS:
            try:
                if element.find_elements(By.CSS_SELECTOR, self.SELECTORS[key]):
                    return kind
            except StaleElementReferenceException:
                return ""
        return ""

    def read_messages(self, limit: Optional[int] = None) -> List[IncomingMessage]:
        """Read the message rows currently rendered in the open chat."""
        messages = []
        for element, data_id in self._get_message_rows():
            from_me, chat_id = parse_message_id(data_id)
            try:
                kind = self._media_kind(element)
                messages.append(IncomingMessage(
                    id=data_id,
                    chat_id=chat_id,
                    body=self._extract_text(element),
                    timestamp=self._extract_timestamp(element),
                    from_me=from_me,
                    has_media=bool(kind),
                    media_kind=kind,
                ))
            except StaleElementReferenceException:
                continue

        if limit is not None:
            messages = messages[-limit:]
        return messages

    # ── Attachments ───────────────────────────────────────────────

    def download_media(self, message_id: str, kind: str = "image") -> Optional[MediaPayload]:
        """
        Fetch the attachment of a message row.

        Images, videos and voice notes are read from their blob: element;
        documents are clicked and picked up from Chrome's download folder.
        """
        if kind == "document":
            return self._download_document(message_id)

        if kind in ("video", "audio"):
            # Blob sources only exist once WhatsApp has fetched the media
            self._click_in_row(message_id, self.SELECTORS["media_download"])
            self._random_delay(1.0, 2.0)

        return self._download_blob(message_id)

    def _row(self, message_id: str):
        return self.driver.find_element(By.CSS_SELECTOR, f'div[data-id="{message_id}"]')

    def _click_in_row(self, message_id: str, selector: str) -> bool:
        try:
            found = self._row(message_id).find_elements(By.CSS_SELECTOR, selector)
            if not found:
                return False
            found[0].click()
            return True
        except (NoSuchElementException, StaleElementReferenceException, WebDriverException) as e:
            logger.debug(f"Could not click {selector} in {message_id}: {e}")
            return False

    def _download_blob(self, message_id: str) -> Optional[MediaPayload]:
        self.driver.set_script_timeout(30)
        try:
            result = self.driver.execute_async_script(_FETCH_BLOB_SCRIPT, message_id)
        except WebDriverException as e:
            raise WhatsAppClientError(f"Media download failed for {message_id}: {e}") from e

        if not result:
            return None
        if result.get("error"):
            raise WhatsAppClientError(f"Media download failed for {message_id}: {result['error']}")

        data_url = result.get("dataUrl") or ""
        _, _, data = data_url.partition(";base64,")
        if not data:
            return None

        mimetype = result.get("type") or data_url[len("data:"):].split(";")[0]
        return MediaPayload(data=data, mimetype=mimetype)

    def _download_document(self, message_id: str) -> Optional[MediaPayload]:
        staging_dir = self._settings.download_staging_dir
        staging_dir.mkdir(parents=True, exist_ok=True)
        known = {p.name for p in staging_dir.iterdir()}

        if not self._click_in_row(message_id, self.SELECTORS["document_download"]):
            logger.warning(f"No download control found for document {message_id}")
            return None

        deadline = time.time() + self._settings.download_timeout
        while time.time() < deadline:
            path = find_finished_download(staging_dir, known)
            if path is not None:
                payload = payload_from_file(path)
                path.unlink()
                return payload
            time.sleep(0.5)

        raise WhatsAppClientError(
            f"Document {message_id} did not finish downloading within {self._settings.download_timeout}s"
        )

    # ── Writing ───────────────────────────────────────────────────

    def _find_message_input(self):
        """Find the message input box with fallback selectors."""
        for selector in (self.SELECTORS["message_input"], self.SELECTORS["message_input_alt"]):
            try:
                return self.driver.find_element(By.CSS_SELECTOR, selector)
            except NoSuchElementException:
                continue
        return None

    def send_message(self, text: str) -> bool:
        """Send a message in the current chat."""
        input_box = self._find_message_input()
        if not input_box:
            logger.error("Could not find message input box")
            return False

        try:
            input_box.click()
            lines = text.split("\n")
            for index, line in enumerate(lines):
                if line:
                    input_box.send_keys(line)
                # Enter would send; Shift+Enter keeps the message multi-line
                if index < len(lines) - 1:
                    input_box.send_keys(Keys.SHIFT, Keys.ENTER)
            self._random_delay(0.2, 0.5)
            input_box.send_keys(Keys.ENTER)
        except WebDriverException as e:
            logger.exception(f"Failed to send message: {e}")
            return False

        logger.info(f"Sent message: {text[:50]}...")
        return True

    def react(self, message_id: str, emoji: str) -> bool:
        """React to a message through the hover reaction picker."""
        try:
            row = self.driver.find_element(By.CSS_SELECTOR, f'div[data-id="{message_id}"]')
            ActionChains(self.driver).move_to_element(row).perform()
            self._random_delay(0.2, 0.4)

            button = None
            for key in ("react_button", "react_button_alt"):
                found = row.find_elements(By.CSS_SELECTOR, self.SELECTORS[key])
                if found:
                    button = found[0]
                    break
            if button is None:
                return False
            button.click()
            self._random_delay(0.2, 0.4)

            choice = self.driver.find_elements(
                By.XPATH, f'//div[@role="dialog"]//*[contains(@aria-label, "{emoji}") or @data-emoji="{emoji}"]'
            )
            if not choice:
                # Only a handful of emojis sit in the quick picker
                self.driver.find_element(By.TAG_NAME, "body").send_keys(Keys.ESCAPE)
                return False
            choice[0].click()
            return True
        except (NoSuchElementException, StaleElementReferenceException, WebDriverException) as e:
            logger.debug(f"Reaction {emoji} failed on {message_id}: {e}")
            return False

    def close(self) -> None:
        """Close browser and cleanup."""
        try:
            self.driver.quit()
            logger.info("Browser closed")
        except WebDriverException as e:
            logger.debug(f"Error closing browser: {e}")
