from __future__ import annotations

import unittest
from unittest import mock

import requests

from statement_review.errors import ConfigurationError, TransportError
from statement_review.storage import (
    StorageSettings,
    blob_url,
    document_link_builder,
    download_workbook,
)

ENV = {
    "AZURE_STORAGE_ACCOUNT_NAME": "reviewacct",
    "AZURE_STORAGE_SAS_TOKEN": "sv=2024&sig=abc",
}


def fake_response(chunks=(b"PK\x03\x04data",), status_code=200, headers=None, error=None):
    response = mock.Mock()
    response.status_code = status_code
    response.headers = headers or {}
    response.iter_content.return_value = iter(chunks)
    if error is not None:
        response.raise_for_status.side_effect = error
    return response


def fake_session(response):
    session = mock.Mock()
    session.get.return_value = response
    return session


class StorageSettingsTests(unittest.TestCase):
    def test_defaults(self):
        settings = StorageSettings.from_env(ENV)
        self.assertEqual(settings.container_name, "bronze")
        self.assertEqual(settings.file_name, "underscore.xlsx")
        self.assertEqual(settings.sas_query, "?sv=2024&sig=abc")
        self.assertEqual(settings.max_bytes, 100 * 1024 * 1024)

    def test_overrides(self):
        settings = StorageSettings.from_env({
            **ENV,
            "AZURE_STORAGE_SAS_TOKEN": "?sig=xyz",
            "AZURE_CONTAINER_NAME": "silver",
            "AZURE_FILE_NAME": "review.xlsx",
            "REVIEW_DOWNLOAD_TIMEOUT": "5",
            "REVIEW_MAX_DOWNLOAD_MB": "2",
        })
        self.assertEqual(settings.sas_query, "?sig=xyz")
        self.assertEqual(settings.container_name, "silver")
        self.assertEqual(settings.timeout, 5)
        self.assertEqual(settings.max_bytes, 2 * 1024 * 1024)

    def test_missing_credentials(self):
        for env in ({}, {"AZURE_STORAGE_ACCOUNT_NAME": "acct"}, {"AZURE_STORAGE_SAS_TOKEN": "sig"}):
            with self.subTest(env=env):
                with self.assertRaises(ConfigurationError) as ctx:
                    StorageSettings.from_env(env)
                self.assertIn("AZURE_STORAGE_ACCOUNT_NAME", str(ctx.exception))

    def test_bad_numbers(self):
        for value in ("fast", "0", "-3"):
            with self.subTest(value=value):
                with self.assertRaises(ConfigurationError):
                    StorageSettings.from_env({**ENV, "REVIEW_DOWNLOAD_TIMEOUT": value})

    def test_blob_url(self):
        settings = StorageSettings.from_env(ENV)
        self.assertEqual(
            blob_url(settings),
            "https://reviewacct.blob.core.windows.net/bronze/underscore.xlsx?sv=2024&sig=abc",
        )


class DownloadWorkbookTests(unittest.TestCase):
    def setUp(self):
        self.settings = StorageSettings.from_env(ENV)

    def test_streams_and_joins_chunks(self):
        response = fake_response(chunks=(b"abc", b"", b"def"))
        session = fake_session(response)
        self.assertEqual(download_workbook(self.settings, session=session), b"abcdef")
        url = session.get.call_args[0][0]
        self.assertTrue(url.endswith("/bronze/underscore.xlsx?sv=2024&sig=abc"))
        self.assertTrue(session.get.call_args[1]["stream"])
        response.close.assert_called_once()

    def test_http_error(self):
        response = fake_response(status_code=403, error=requests.HTTPError("403 Forbidden"))
        with self.assertRaises(TransportError) as ctx:
            download_workbook(self.settings, session=fake_session(response))
        self.assertIn("HTTP 403", str(ctx.exception))
        self.assertIsInstance(ctx.exception.__cause__, requests.HTTPError)
        response.close.assert_called_once()

    def test_connection_error(self):
        session = mock.Mock()
        session.get.side_effect = requests.ConnectionError("no route")
        with self.assertRaises(TransportError) as ctx:
            download_workbook(self.settings, session=session)
        self.assertIn("no route", str(ctx.exception))

    def test_empty_body(self):
        with self.assertRaises(TransportError) as ctx:
            download_workbook(self.settings, session=fake_session(fake_response(chunks=())))
        self.assertIn("empty response body", str(ctx.exception))

    def test_declared_size_over_limit(self):
        settings = StorageSettings.from_env({**ENV, "REVIEW_MAX_DOWNLOAD_MB": "1"})
        response = fake_response(headers={"Content-Length": str(2 * 1024 * 1024)})
        with self.assertRaises(TransportError):
            download_workbook(settings, session=fake_session(response))
        response.iter_content.assert_not_called()

    def test_streamed_size_over_limit(self):
        settings = StorageSettings.from_env({**ENV, "REVIEW_MAX_DOWNLOAD_MB": "1"})
        chunk = b"x" * (600 * 1024)
        with self.assertRaises(TransportError) as ctx:
            download_workbook(settings, session=fake_session(fake_response(chunks=(chunk, chunk))))
        self.assertIn("larger than 1 MB", str(ctx.exception))


class DocumentLinkTests(unittest.TestCase):
    def test_default_template(self):
        build = document_link_builder(StorageSettings.from_env(ENV), "29_batch")
        self.assertEqual(
            build("DOC-1.pdf"),
            "https://reviewacct.blob.core.windows.net/bronze/29_batch/DOC-1.pdf?sv=2024&sig=abc",
        )

    def test_empty_prefix_has_no_double_slash(self):
        build = document_link_builder(StorageSettings.from_env(ENV), "")
        self.assertEqual(
            build("DOC-1"),
            "https://reviewacct.blob.core.windows.net/bronze/DOC-1?sv=2024&sig=abc",
        )

    def test_custom_template(self):
        settings = StorageSettings.from_env({**ENV, "REVIEW_DOC_LINK_TEMPLATE": "https://viewer.example/{prefix}{doc_id}"})
        self.assertEqual(document_link_builder(settings, "/30_batch/")("D 7"), "https://viewer.example/30_batch/D%207")

    def test_custom_template_with_empty_prefix(self):
        settings = StorageSettings.from_env({**ENV, "REVIEW_DOC_LINK_TEMPLATE": "https://viewer.example/docs/{prefix}{doc_id}"})
        self.assertEqual(document_link_builder(settings, "")("D1"), "https://viewer.example/docs/D1")

    def test_invalid_template_is_a_configuration_error(self):
        for template in ("https://x/{prefix}/{docid}", "https://x/{0}", "https://x/{doc_id", "https://x/{doc_id.name}"):
            with self.subTest(template=template):
                with self.assertRaises(ConfigurationError) as ctx:
                    StorageSettings.from_env({**ENV, "REVIEW_DOC_LINK_TEMPLATE": template})
                self.assertIn("REVIEW_DOC_LINK_TEMPLATE", str(ctx.exception))

    def test_builder_checks_template_of_direct_settings(self):
        settings = StorageSettings(account_name="acct", sas_token="sig=1", doc_link_template="https://x/{docid}")
        with self.assertRaises(ConfigurationError):
            document_link_builder(settings, "29_batch")


if __name__ == "__main__":
    unittest.main()
