from unittest import mock

import pandas as pd
import pytest
import requests

from blogposts.data_pipeline import scraper

HTML = """
<html><body>
<table>
  <tr><th>Country</th><th>Rate[1]</th><th>Population</th></tr>
  <tr><td>Alpha</td><td>97.5%</td><td>1,200,000</td></tr>
  <tr><td>Beta[a]</td><td>88.1%</td><td>350,000</td></tr>
  <tr><td>Gamma</td><td>—</td><td>45,000</td></tr>
</table>
<table>
  <tr><th>Other</th></tr>
  <tr><td>x</td></tr>
</table>
</body></html>
"""


def _response(text, status=200):
    resp = mock.Mock()
    resp.text = text
    resp.status_code = status
    if status >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f"{status} Error")
    else:
        resp.raise_for_status.return_value = None
    return resp


def test_fetch_page_sends_user_agent():
    with mock.patch.object(scraper.requests, "get", return_value=_response(HTML)) as get:
        html = scraper.fetch_page("https://example.org/t", timeout=5, user_agent="agent/1.0")

    assert html == HTML
    _, kwargs = get.call_args
    assert kwargs["timeout"] == 5
    assert kwargs["headers"]["User-Agent"] == "agent/1.0"


def test_fetch_page_raises_on_http_error():
    with mock.patch.object(scraper.requests, "get", return_value=_response("", 404)):
        with pytest.raises(requests.HTTPError):
            scraper.fetch_page("https://example.org/missing")


def test_extract_tables_with_match():
    tables = scraper.extract_tables(HTML, match="Population")
    assert len(tables) == 1
    assert len(scraper.extract_tables(HTML)) == 2


def test_extract_tables_without_match_raises():
    with pytest.raises(ValueError):
        scraper.extract_tables(HTML, match="no such text")


def test_clean_scraped_table():
    raw = pd.DataFrame({
        "Country": ["Alpha", "Beta[a]", "Gamma"],
        "Rate[1]": ["97.5%", "88.1%", "—"],
        "Population": ["1,200,000", "350,000", "45,000"],
        "Empty": [None, None, None],
    })
    out = scraper.clean_scraped_table(raw)

    assert list(out.columns) == ["Country", "Rate", "Population"]
    assert out["Country"].tolist() == ["Alpha", "Beta", "Gamma"]
    assert out["Rate"].iloc[0] == pytest.approx(97.5)
    assert pd.isna(out["Rate"].iloc[2])
    assert out["Population"].tolist() == [1200000, 350000, 45000]


def test_clean_scraped_table_flattens_multiindex():
    raw = pd.DataFrame([[1, 2]], columns=pd.MultiIndex.from_tuples(
        [("Rate", "2020"), ("Unnamed: 1_level_0", "Total")]
    ))
    out = scraper.clean_scraped_table(raw)
    assert list(out.columns) == ["Rate 2020", "Total"]


def test_scrape_table_end_to_end():
    with mock.patch.object(scraper.requests, "get", return_value=_response(HTML)):
        table = scraper.scrape_table("https://example.org/t", match="Population")

    assert table.shape == (3, 3)
    assert table["Rate"].dropna().tolist() == pytest.approx([97.5, 88.1])


def test_scrape_table_index_out_of_range():
    with mock.patch.object(scraper.requests, "get", return_value=_response(HTML)):
        with pytest.raises(ValueError):
            scraper.scrape_table("https://example.org/t", match="Population", table_index=3)


def test_load_or_scrape_uses_cache(tmp_path):
    cache = tmp_path / "cache" / "table.csv"
    with mock.patch.object(scraper.requests, "get", return_value=_response(HTML)) as get:
        first = scraper.load_or_scrape(cache, url="https://example.org/t", match="Population")
        second = scraper.load_or_scrape(cache)

    assert get.call_count == 1
    assert cache.exists()
    assert list(first.columns) == list(second.columns)
    assert len(first) == len(second)


def test_load_or_scrape_refreshes_for_explicit_url(tmp_path):
    cache = tmp_path / "table.csv"
    pd.DataFrame({"stale": [1, 2]}).to_csv(cache, index=False)

    with mock.patch.object(scraper.requests, "get", return_value=_response(HTML)) as get:
        table = scraper.load_or_scrape(cache, url="https://other.example/new", match="Population")

    assert get.call_count == 1
    assert "stale" not in table.columns
    assert list(pd.read_csv(cache).columns) == ["Country", "Rate", "Population"]


def test_clean_scraped_table_repeated_headers():
    raw = pd.DataFrame([["1.5", "2.5", 3]], columns=["Rate[1]", "Rate[2]", "Rate"])
    out = scraper.clean_scraped_table(raw)

    assert list(out.columns) == ["Rate", "Rate_2", "Rate_3"]
    assert out["Rate_2"].iloc[0] == pytest.approx(2.5)


def test_clean_scraped_table_blank_headers():
    raw = pd.DataFrame([["a", "1,000", "2,000"]], columns=pd.MultiIndex.from_tuples([
        ("Country", "Country"),
        ("Unnamed: 1_level_0", "Unnamed: 1_level_1"),
        ("Unnamed: 2_level_0", "Unnamed: 2_level_1"),
    ]))
    out = scraper.clean_scraped_table(raw)

    assert list(out.columns) == ["Country", "column_2", "column_3"]
    assert out["column_3"].iloc[0] == 2000
