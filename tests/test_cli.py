import pathlib
import tempfile
import unittest as ut
from unittest import mock

from click.testing import CliRunner

from rbstore.cli.commands import main
from rbstore.storage import StorageController
from tests.storage.fake_gcs import FakeGCSStorage, FakeServer


class TestCommands(ut.TestCase):

    def setUp(self):
        self.server = FakeServer()
        self.server.put("backups", "backup/b1/metadata.json", b"{}")
        self.server.put("backups", "backup/b1/shadow/part1", b"12345")
        self.server.put("source", "store/abc", b"object disk data")
        self.runner = CliRunner()

    def _invoke(self, *args):
        storage = FakeGCSStorage(self.server, path="backup", object_disk_path="disks")
        with mock.patch.object(StorageController, "get_storage", return_value=storage):
            return self.runner.invoke(main, list(args))

    def test_ls(self):
        result = self._invoke("ls", "b1")
        self.assertEqual(0, result.exit_code, result.output)
        lines = result.output.strip().split("\n")
        self.assertEqual(2, len(lines))
        self.assertTrue(lines[0].endswith("metadata.json"))
        self.assertIn("DIR", lines[1])
        self.assertTrue(lines[1].endswith("shadow/"))

    def test_ls_recursive(self):
        result = self._invoke("ls", "--recursive")
        self.assertEqual(0, result.exit_code, result.output)
        self.assertIn("b1/shadow/part1", result.output)
        self.assertNotIn("DIR", result.output)

    def test_stat(self):
        result = self._invoke("stat", "b1/shadow/part1")
        self.assertEqual(0, result.exit_code, result.output)
        self.assertIn("5", result.output)

    def test_stat_missing(self):
        result = self._invoke("stat", "nothing")
        self.assertEqual(1, result.exit_code)
        self.assertIn("StorageNotFound", result.output)

    def test_put_get(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            source = pathlib.Path(temp_dir) / "upload.bin"
            source.write_bytes(b"payload")
            result = self._invoke("put", str(source), "b2/upload.bin")
            self.assertEqual(0, result.exit_code, result.output)
            self.assertEqual(b"payload", self.server.get("backups", "backup/b2/upload.bin")["data"])
            target = pathlib.Path(temp_dir) / "download.bin"
            result = self._invoke("get", "b2/upload.bin", str(target))
            self.assertEqual(0, result.exit_code, result.output)
            self.assertEqual(b"payload", target.read_bytes())

    def test_rm(self):
        self.server.put("backups", "disks/b1/abc", b"1")
        result = self._invoke("rm", "b1/metadata.json")
        self.assertEqual(0, result.exit_code, result.output)
        result = self._invoke("rm", "--object-disk", "b1/abc")
        self.assertEqual(0, result.exit_code, result.output)
        self.assertEqual(["backup/b1/shadow/part1"], self.server.keys("backups"))

    def test_cp(self):
        result = self._invoke("cp", "source", "store/abc", "b1/abc")
        self.assertEqual(0, result.exit_code, result.output)
        self.assertIn("Copied 16 bytes", result.output)
        self.assertEqual(b"object disk data", self.server.get("backups", "disks/b1/abc")["data"])
