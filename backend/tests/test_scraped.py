"""Tests for scraped data scoring and scrape dialog parsing."""

from autoscrape.schemas.automation import ScoringWeights
from autoscrape.schemas.scraped import ScrapedData
from autoscrape.services.scoring import score_scraped_data
from autoscrape.surface.stash_page import classify_outcome_text, parse_scrape_dialog

from conftest import FULL_DATA


class TestScoring:
    def test_none_scores_zero(self):
        assert score_scraped_data(None) == 0
        assert score_scraped_data(ScrapedData()) == 0

    def test_field_weights(self):
        data = ScrapedData(title="t", date="2024-01-01", studio="s")
        assert score_scraped_data(data) == 45

    def test_list_fields_are_capped(self):
        data = ScrapedData(performers=[f"p{i}" for i in range(10)], tags=[f"t{i}" for i in range(20)])
        assert score_scraped_data(data) == 35

    def test_short_details_do_not_count(self):
        assert score_scraped_data(ScrapedData(details="too short")) == 0

    def test_full_data_is_clamped(self):
        weights = ScoringWeights(title=90)
        assert score_scraped_data(FULL_DATA, weights) == 100


DIALOG = """
<div class="modal-dialog">
  <div class="modal-body">
    <div class="row form-group">
      <label class="col-lg-3">Title</label>
      <div class="col-lg-9"><div class="row">
        <div class="col-6"><input value="Old title"></div>
        <div class="col-6"><input value="New title"></div>
      </div></div>
    </div>
    <div class="row form-group">
      <label class="col-lg-3">Performers</label>
      <div class="col-lg-9"><div class="row">
        <div class="col-6"></div>
        <div class="col-6">
          <span class="react-select__multi-value__label">Alice</span>
          <span class="react-select__multi-value__label">Bob</span>
        </div>
      </div></div>
    </div>
    <div class="row form-group">
      <label class="col-lg-3">Details</label>
      <div class="col-lg-9"><div class="row">
        <div class="col-6"><textarea></textarea></div>
        <div class="col-6"><textarea>Long description</textarea></div>
      </div></div>
    </div>
    <div class="row form-group">
      <label class="col-lg-3">Cover Image</label>
      <div class="col-lg-9"><div class="row">
        <div class="col-6"></div>
        <div class="col-6"><img src="data:image/jpeg;base64,abc"></div>
      </div></div>
    </div>
    <div class="row form-group">
      <label class="col-lg-3">Rating</label>
      <div class="col-lg-9"><div class="row">
        <div class="col-6">3</div>
        <div class="col-6">5</div>
      </div></div>
    </div>
  </div>
</div>
"""


class TestScrapeDialog:
    def test_reads_scraped_column(self):
        data = parse_scrape_dialog(DIALOG)

        assert data.title == "New title"
        assert data.performers == ["Alice", "Bob"]
        assert data.details == "Long description"
        assert data.thumbnail == "data:image/jpeg;base64,abc"
        assert data.present_fields() == ["title", "performers", "details", "thumbnail"]

    def test_empty_dialog(self):
        assert parse_scrape_dialog("").present_fields() == []

    def test_outcome_text(self):
        assert classify_outcome_text("No results found") == "no results found"
        assert classify_outcome_text("Scraper failed: 502") == "scraper failed: 502"
        assert classify_outcome_text("Scene scraped") is None
        assert classify_outcome_text(None) is None
