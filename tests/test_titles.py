"""Tests for the OMDb client and title search."""

import unittest
from unittest.mock import MagicMock, patch

import requests

from tests.helpers import AppTestCase, make_title
from watchd.errors import DependencyFailure
from watchd.titles.client import OmdbClient


def _response(payload, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    return response


class OmdbClientTestCase(unittest.TestCase):
    """Test case for the OMDb client."""

    def setUp(self):
        self.session = MagicMock()
        self.client = OmdbClient("key", session=self.session)

    def test_fetch_title(self):
        self.session.get.return_value = _response(
            {
                "Response": "True",
                "imdbID": "tt0111161",
                "Title": "The Shawshank Redemption",
                "Type": "movie",
                "Year": "1994",
                "Poster": "N/A",
                "Plot": "Two imprisoned men bond.",
            }
        )
        title = self.client.fetch_title_by_id("tt0111161")
        self.assertEqual(title.title, "The Shawshank Redemption")
        self.assertIsNone(title.posterUrl)
        self.assertEqual(title.raw["Year"], "1994")
        params = self.session.get.call_args.kwargs["params"]
        self.assertEqual(params["apikey"], "key")
        self.assertEqual(params["i"], "tt0111161")

    def test_unknown_title(self):
        self.session.get.return_value = _response(
            {"Response": "False", "Error": "Incorrect IMDb ID."}
        )
        self.assertIsNone(self.client.fetch_title_by_id("tt0000000"))

    def test_search_filters_type(self):
        self.session.get.return_value = _response(
            {
                "Response": "True",
                "Search": [
                    {"imdbID": "tt0903747", "Title": "Breaking Bad", "Type": "series"},
                    {"imdbID": "tt1", "Title": "Odd", "Type": "game"},
                ],
            }
        )
        results = self.client.search_titles("breaking", "series")
        self.assertEqual([r.type for r in results], ["series", "movie"])
        self.assertIsNone(results[0].raw)
        self.assertEqual(self.session.get.call_args.kwargs["params"]["type"], "series")

    def test_search_without_results(self):
        self.session.get.return_value = _response(
            {"Response": "False", "Error": "Movie not found!"}
        )
        self.assertEqual(self.client.search_titles("zzzz"), [])

    def test_missing_key(self):
        with self.assertRaises(DependencyFailure):
            OmdbClient(None, session=self.session).search_titles("heat")
        self.session.get.assert_not_called()

    def test_transport_errors(self):
        self.session.get.side_effect = requests.ConnectionError("down")
        with self.assertRaises(DependencyFailure):
            self.client.fetch_title_by_id("tt0111161")

        self.session.get.side_effect = None
        self.session.get.return_value = _response({}, status_code=503)
        with self.assertRaises(DependencyFailure):
            self.client.fetch_title_by_id("tt0111161")


class TitleRoutesTestCase(AppTestCase):
    """Test case for the titles blueprint."""

    def test_search_requires_login(self):
        self.assertEqual(self.client.get("/titles/search?q=heat").status_code, 401)

    def test_short_query(self):
        self.login("alice")
        response = self.client.get("/titles/search?q=h")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["error"]["kind"], "validation_error")

    @patch("watchd.titles.routes.get_title_client")
    def test_search(self, get_title_client):
        self.login("alice")
        get_title_client.return_value.search_titles.return_value = [
            make_title("tt0113277", "Heat", "1995")
        ]
        response = self.client.get("/titles/search?q=heat&type=movie")
        self.assertEqual(response.status_code, 200)
        results = response.get_json()["results"]
        self.assertEqual(results[0]["title"], "Heat")
        self.assertNotIn("raw", results[0])
        get_title_client.return_value.search_titles.assert_called_once_with("heat", "movie")

    @patch("watchd.titles.routes.get_title_client")
    def test_lookup_outage(self, get_title_client):
        self.login("alice")
        get_title_client.return_value.search_titles.side_effect = DependencyFailure()
        response = self.client.get("/titles/search?q=heat")
        self.assertEqual(response.status_code, 502)


if __name__ == "__main__":
    unittest.main()
