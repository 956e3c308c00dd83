"""
Tests for FileSystemGate file operations and the gate facade.
"""

import base64
import json
import os
import shutil
import threading
import pytest
from pathlib import Path

from wpmcp.FileSystemGate import (
    CallerContext,
    FileErrorKind,
    FileOperationsService,
    FileSystemConfig,
    FileSystemGate,
    allow_all,
    caller_context,
)
import wpmcp.FileSystemGate as fs_module


STYLE = "wp-content/themes/mytheme/style.css"


def backup_ids(backup_dir: Path):
    return sorted(p.name[:-len(".bak")] for p in backup_dir.glob("*.bak"))


@pytest.fixture
def service(wp_root):
    return FileOperationsService(str(wp_root), can_manage_files=allow_all, user_id_provider=lambda: 1)


class TestAuthorization:
    """Every operation checks the capability predicate first."""

    def test_default_predicate_denies(self, wp_root):
        service = FileOperationsService(str(wp_root))
        result = service.read(STYLE)

        assert result.success is False
        assert result.error_kind == FileErrorKind.UNAUTHORIZED

    def test_denied_before_validation(self, wp_root):
        service = FileOperationsService(str(wp_root))
        result = service.read("wp-config.php")

        assert result.error_kind == FileErrorKind.UNAUTHORIZED

    def test_denied_write_does_not_touch_disk(self, wp_root, backup_dir):
        service = FileOperationsService(str(wp_root), can_manage_files=lambda: False)
        original = (wp_root / STYLE).read_text()

        result = service.write(STYLE, "changed")

        assert result.error_kind == FileErrorKind.UNAUTHORIZED
        assert (wp_root / STYLE).read_text() == original
        assert backup_ids(backup_dir) == []

    def test_denied_write_creates_nothing(self, wp_root):
        service = FileOperationsService(str(wp_root), can_manage_files=lambda: False)

        result = service.write("wp-content/uploads/new.txt", "hi")

        assert result.success is False
        assert result.error_kind == FileErrorKind.UNAUTHORIZED
        assert not (wp_root / "wp-content/uploads/new.txt").exists()

    @pytest.mark.parametrize("call", [
        lambda s: s.read(STYLE),
        lambda s: s.list("wp-content/themes"),
        lambda s: s.info(STYLE),
        lambda s: s.write("wp-content/uploads/new.txt", "x"),
        lambda s: s.delete(STYLE),
        lambda s: s.copy(STYLE, "wp-content/themes/mytheme/copy.css"),
        lambda s: s.move(STYLE, "wp-content/themes/mytheme/moved.css"),
    ])
    def test_every_operation_refuses_denied_caller(self, wp_root, call):
        result = call(FileOperationsService(str(wp_root), can_manage_files=lambda: False))

        assert result.success is False
        assert result.error_kind == FileErrorKind.UNAUTHORIZED
        assert (wp_root / STYLE).exists()

    @pytest.mark.parametrize("call", [
        lambda s: s.read("wp-content/themes/../../../etc/passwd"),
        lambda s: s.list("wp-content/themes/../.."),
        lambda s: s.info("wp-content/themes/../../wp-config.php"),
        lambda s: s.write("wp-content/themes/../../../etc/passwd", "x"),
        lambda s: s.delete("wp-content/themes/../../wp-config.php"),
        lambda s: s.copy("wp-content/themes/../../wp-config.php", "wp-content/uploads/c.php"),
        lambda s: s.move(STYLE, "wp-content/themes/../../moved.css"),
    ])
    def test_every_operation_returns_invalid_path_for_traversal(self, service, call):
        result = call(service)

        assert result.success is False
        assert result.error_kind == FileErrorKind.INVALID_PATH

    @pytest.mark.parametrize("call", [
        lambda s: s.read(STYLE),
        lambda s: s.list("wp-content/themes"),
        lambda s: s.info(STYLE),
        lambda s: s.write(STYLE, "x"),
        lambda s: s.delete(STYLE),
        lambda s: s.copy(STYLE, "wp-content/themes/mytheme/copy.css"),
        lambda s: s.move(STYLE, "wp-content/themes/mytheme/moved.css"),
    ])
    def test_predicate_evaluated_once_per_call(self, wp_root, call):
        calls = []

        def predicate():
            calls.append(1)
            return True

        call(FileOperationsService(str(wp_root), can_manage_files=predicate))

        assert len(calls) == 1


class TestRead:
    """Tests for read."""

    def test_read_text(self, service, wp_root):
        result = service.read(STYLE)

        assert result.success is True
        assert result.data["content"] == "body { color: red; }"
        assert result.data["size"] == len("body { color: red; }")
        assert result.data["encoding"] == "utf-8"
        assert result.data["modified"]

    def test_read_binary(self, service, wp_root):
        png = b"\x89PNG\r\n\x1a\n\x00\xff"
        (wp_root / "wp-content" / "uploads" / "a.png").write_bytes(png)

        result = service.read("wp-content/uploads/a.png", binary=True)

        assert result.success is True
        assert result.data["encoding"] == "base64"
        assert base64.b64decode(result.data["content"]) == png

    def test_read_undecodable_text(self, service, wp_root):
        (wp_root / "wp-content" / "uploads" / "a.png").write_bytes(b"\x89PNG\xff\xfe")

        result = service.read("wp-content/uploads/a.png")

        assert result.error_kind == FileErrorKind.NOT_READABLE

    def test_read_missing(self, service):
        result = service.read("wp-content/themes/mytheme/missing.css")

        assert result.success is False
        assert result.error_kind == FileErrorKind.NOT_FOUND

    def test_read_directory(self, service):
        result = service.read("wp-content/themes/mytheme")
        assert result.error_kind == FileErrorKind.NOT_READABLE

    def test_read_traversal(self, service):
        result = service.read("wp-content/themes/../../../etc/passwd")

        assert result.success is False
        assert result.error_kind == FileErrorKind.INVALID_PATH

    def test_read_outside_roots(self, service):
        result = service.read("wp-config.php")
        assert result.error_kind == FileErrorKind.INVALID_PATH

    def test_read_is_idempotent(self, service):
        first = service.read(STYLE)
        second = service.read(STYLE)

        assert first.data == second.data


class TestList:
    """Tests for list."""

    def test_flat_listing(self, service):
        result = service.list("wp-content/themes/mytheme")
        entries = result.data["entries"]

        assert result.success is True
        assert [e["name"] for e in entries] == ["parts", "functions.php", "style.css"]
        assert entries[0]["type"] == "directory"
        assert entries[0]["size"] == 0
        assert entries[2]["path"] == STYLE
        assert entries[2]["type"] == "file"

    def test_recursive_listing_returns_files_only(self, service):
        result = service.list("wp-content/themes", recursive=True)
        paths = [e["path"] for e in result.data["entries"]]

        assert paths == [
            "wp-content/themes/mytheme/functions.php",
            "wp-content/themes/mytheme/parts/header.html",
            "wp-content/themes/mytheme/style.css",
        ]
        assert all(e["type"] == "file" for e in result.data["entries"])

    def test_list_empty_root(self, service):
        result = service.list("wp-content/uploads")

        assert result.success is True
        assert result.data["entries"] == []

    def test_list_file_is_not_directory(self, service):
        result = service.list(STYLE)
        assert result.error_kind == FileErrorKind.NOT_A_DIRECTORY

    def test_list_missing_is_not_directory(self, service):
        result = service.list("wp-content/themes/missing")
        assert result.error_kind == FileErrorKind.NOT_A_DIRECTORY

    def test_list_outside_roots(self, service):
        result = service.list("wp-content")
        assert result.error_kind == FileErrorKind.INVALID_PATH


class TestInfo:
    """Tests for info."""

    def test_file_info(self, service, wp_root):
        target = wp_root / STYLE
        os.chmod(str(target), 0o644)

        result = service.info(STYLE)

        assert result.success is True
        assert result.data["size"] == target.stat().st_size
        assert result.data["type"] == "file"
        assert result.data["path"] == STYLE
        if os.name == "posix":
            assert result.data["permissions"] == "0644"

    def test_permissions_are_four_octal_digits(self, service):
        result = service.info(STYLE)
        assert len(result.data["permissions"]) == 4
        assert all(c in "01234567" for c in result.data["permissions"])

    def test_directory_info(self, service):
        result = service.info("wp-content/themes/mytheme")
        assert result.data["type"] == "directory"

    def test_info_missing(self, service):
        result = service.info("wp-content/themes/mytheme/nope.css")
        assert result.error_kind == FileErrorKind.NOT_FOUND


class TestWrite:
    """Tests for write."""

    def test_write_new_file_creates_parents(self, service, wp_root, backup_dir):
        result = service.write("wp-content/plugins/newplugin/inc/main.js", "console.log(1);")

        assert result.success is True
        assert result.backup_id is None
        assert result.data == {"success": True, "backup_id": None, "bytes_written": 15}
        assert (wp_root / "wp-content/plugins/newplugin/inc/main.js").read_text() == "console.log(1);"
        assert backup_ids(backup_dir) == []

    def test_write_then_read_round_trip(self, service):
        content = "line one\r\nline two\nunicode: é✓\n"

        service.write("wp-content/uploads/notes.txt", content)
        result = service.read("wp-content/uploads/notes.txt")

        assert result.data["content"] == content
        assert result.data["size"] == len(content.encode("utf-8"))

    def test_overwrite_creates_backup_of_previous_bytes(self, service, wp_root, backup_dir):
        original = (wp_root / STYLE).read_bytes()

        result = service.write(STYLE, "body { color: blue; }")

        assert result.success is True
        assert result.backup_id is not None
        assert result.data["backup_id"] == result.backup_id
        assert (backup_dir / f"{result.backup_id}.bak").read_bytes() == original

        meta = json.loads((backup_dir / f"{result.backup_id}.bak.meta").read_text())
        assert meta["originalPath"] == STYLE
        assert meta["userId"] == 1
        assert (wp_root / STYLE).read_text() == "body { color: blue; }"

    def test_overwrite_without_backup(self, service, backup_dir):
        result = service.write(STYLE, "x", create_backup=False)

        assert result.success is True
        assert result.backup_id is None
        assert backup_ids(backup_dir) == []

    def test_write_bytes(self, service, wp_root):
        result = service.write("wp-content/uploads/a.png", b"\x89PNG\x00")

        assert result.data["bytes_written"] == 5
        assert (wp_root / "wp-content/uploads/a.png").read_bytes() == b"\x89PNG\x00"

    def test_write_base64_matches_binary_read(self, service, wp_root):
        png = b"\x89PNG\r\n\x1a\n\x00\xff"
        encoded = base64.b64encode(png).decode("ascii")

        result = service.write("wp-content/uploads/b.png", encoded, encoding="base64")

        assert result.success is True
        assert result.data["bytes_written"] == len(png)
        assert (wp_root / "wp-content/uploads/b.png").read_bytes() == png
        assert service.read("wp-content/uploads/b.png", binary=True).data["content"] == encoded

    def test_write_invalid_base64(self, service, wp_root):
        result = service.write("wp-content/uploads/b.png", "not base64!!", encoding="base64")

        assert result.error_kind == FileErrorKind.CONTENT_REJECTED
        assert result.error == "Content is not valid base64"
        assert not (wp_root / "wp-content/uploads/b.png").exists()

    def test_write_unknown_encoding(self, service):
        result = service.write("wp-content/uploads/a.txt", "hi", encoding="latin-1")

        assert result.error_kind == FileErrorKind.CONTENT_REJECTED
        assert result.error == "Unsupported encoding: latin-1"

    def test_write_base64_content_is_scanned(self, service, wp_root):
        payload = base64.b64encode(b"<?php shell_exec('id'); ").decode("ascii")

        result = service.write("wp-content/plugins/myplugin/x.php", payload, encoding="base64")

        assert result.error_kind == FileErrorKind.CONTENT_REJECTED
        assert not (wp_root / "wp-content/plugins/myplugin/x.php").exists()

    def test_write_none_content_creates_empty_file(self, service, wp_root):
        result = service.write("wp-content/uploads/empty.txt", None)

        assert result.success is True
        assert (wp_root / "wp-content/uploads/empty.txt").read_bytes() == b""

    def test_write_too_large(self, wp_root, backup_dir):
        config = FileSystemConfig(max_file_size_bytes=10)
        service = FileOperationsService(str(wp_root), config=config, can_manage_files=allow_all)
        original = (wp_root / STYLE).read_text()

        result = service.write(STYLE, "x" * 11)

        assert result.error_kind == FileErrorKind.FILE_TOO_LARGE
        assert (wp_root / STYLE).read_text() == original
        assert backup_ids(backup_dir) == []

    def test_write_at_exact_limit(self, wp_root):
        config = FileSystemConfig(max_file_size_bytes=10)
        service = FileOperationsService(str(wp_root), config=config, can_manage_files=allow_all)

        assert service.write("wp-content/uploads/ten.txt", "x" * 10).success is True

    def test_write_dangerous_content_rejected_without_mutation(self, service, wp_root, backup_dir):
        original = (wp_root / "wp-content/themes/mytheme/functions.php").read_text()

        result = service.write(
            "wp-content/themes/mytheme/functions.php",
            "<?php eval($_POST['x']); ?>",
        )

        assert result.success is False
        assert result.error_kind == FileErrorKind.CONTENT_REJECTED
        assert "eval" in result.error
        assert (wp_root / "wp-content/themes/mytheme/functions.php").read_text() == original
        assert backup_ids(backup_dir) == []

    def test_write_unbalanced_php_rejected(self, service):
        result = service.write("wp-content/themes/mytheme/functions.php", "<?php function a() {")

        assert result.error_kind == FileErrorKind.CONTENT_REJECTED
        assert result.error.startswith("PHP validation failed")

    def test_write_disallowed_extension(self, service, wp_root):
        result = service.write("wp-content/uploads/shell.phtml", "hi")

        assert result.error_kind == FileErrorKind.INVALID_EXTENSION
        assert not (wp_root / "wp-content/uploads/shell.phtml").exists()

    def test_write_to_directory_fails(self, service):
        result = service.write("wp-content/themes/mytheme", "x")
        assert result.error_kind == FileErrorKind.STORAGE_FAILURE

    def test_backup_failure_does_not_abort_write(self, service, wp_root, backup_dir, monkeypatch):
        def broken_copy(src, dst, *args, **kwargs):
            raise OSError("disk full")

        monkeypatch.setattr(shutil, "copyfile", broken_copy)

        result = service.write(STYLE, "after")

        assert result.success is True
        assert result.backup_id is None
        assert (wp_root / STYLE).read_text() == "after"
        assert backup_ids(backup_dir) == []

    def test_concurrent_writes_are_serialized(self, service, wp_root, backup_dir):
        contents = [f"/* writer {i} */" + "x" * 5000 for i in range(10)]
        results = []

        def writer(content):
            results.append(service.write(STYLE, content))

        threads = [threading.Thread(target=writer, args=(c,)) for c in contents]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert all(r.success for r in results)
        assert (wp_root / STYLE).read_text() in contents

        ids = backup_ids(backup_dir)
        assert len(ids) == 10
        assert len({r.backup_id for r in results}) == 10

        # Every backup holds one complete earlier version
        versions = set(contents) | {"body { color: red; }"}
        for backup_id in ids:
            assert (backup_dir / f"{backup_id}.bak").read_text() in versions


class TestDelete:
    """Tests for delete."""

    def test_delete_with_backup(self, service, wp_root, backup_dir):
        original = (wp_root / STYLE).read_bytes()

        result = service.delete(STYLE)

        assert result.success is True
        assert result.data == {"success": True, "backup_id": result.backup_id}
        assert not (wp_root / STYLE).exists()
        assert (backup_dir / f"{result.backup_id}.bak").read_bytes() == original

    def test_delete_without_backup(self, service, wp_root, backup_dir):
        result = service.delete(STYLE, create_backup=False)

        assert result.success is True
        assert result.backup_id is None
        assert backup_ids(backup_dir) == []

    def test_delete_missing(self, service):
        result = service.delete("wp-content/themes/mytheme/nope.css")
        assert result.error_kind == FileErrorKind.NOT_FOUND

    def test_delete_directory_fails(self, service, wp_root):
        result = service.delete("wp-content/themes/mytheme/parts")

        assert result.error_kind == FileErrorKind.STORAGE_FAILURE
        assert (wp_root / "wp-content/themes/mytheme/parts").is_dir()

    def test_delete_outside_roots(self, service, wp_root):
        result = service.delete("wp-config.php")

        assert result.error_kind == FileErrorKind.INVALID_PATH
        assert (wp_root / "wp-config.php").exists()


class TestCopyMove:
    """Tests for copy and move."""

    def test_copy_creates_destination_parent(self, service, wp_root):
        png = b"\x89PNG\x00\x01"
        (wp_root / "wp-content/uploads/a.png").write_bytes(png)

        result = service.copy("wp-content/uploads/a.png", "wp-content/uploads/2024/b.png")

        assert result.success is True
        assert result.path == "wp-content/uploads/2024/b.png"
        assert service.read("wp-content/uploads/2024/b.png", binary=True).data["content"] == \
            base64.b64encode(png).decode("ascii")
        assert (wp_root / "wp-content/uploads/a.png").exists()

    def test_copy_across_roots(self, service, wp_root):
        result = service.copy(STYLE, "wp-content/plugins/myplugin/style.css")

        assert result.success is True
        assert (wp_root / "wp-content/plugins/myplugin/style.css").read_text() == "body { color: red; }"

    def test_copy_missing_source(self, service):
        result = service.copy("wp-content/uploads/nope.png", "wp-content/uploads/b.png")

        assert result.error_kind == FileErrorKind.NOT_FOUND
        assert result.error == "Source file not found"

    def test_copy_invalid_destination(self, service, wp_root):
        result = service.copy(STYLE, "wp-config.php.css")

        assert result.error_kind == FileErrorKind.INVALID_PATH
        assert result.error.startswith("Destination:")
        assert not (wp_root / "wp-config.php.css").exists()

    def test_copy_invalid_source(self, service):
        result = service.copy("wp-config.php", "wp-content/uploads/config.php")

        assert result.error_kind == FileErrorKind.INVALID_PATH
        assert result.error.startswith("Source:")

    def test_move(self, service, wp_root):
        result = service.move(STYLE, "wp-content/themes/mytheme/css/main.css")

        assert result.success is True
        assert not (wp_root / STYLE).exists()
        assert (wp_root / "wp-content/themes/mytheme/css/main.css").read_text() == "body { color: red; }"

    def test_move_missing_source(self, service):
        result = service.move("wp-content/themes/mytheme/nope.css", "wp-content/themes/mytheme/x.css")
        assert result.error_kind == FileErrorKind.NOT_FOUND

    def test_move_disallowed_destination_extension(self, service, wp_root):
        result = service.move(STYLE, "wp-content/themes/mytheme/style.phtml")

        assert result.error_kind == FileErrorKind.INVALID_EXTENSION
        assert (wp_root / STYLE).exists()

    def test_copy_onto_directory_fails(self, service, wp_root):
        result = service.copy(STYLE, "wp-content/uploads")

        assert result.success is False
        assert result.error_kind == FileErrorKind.STORAGE_FAILURE
        assert result.error == "Destination is a directory"
        assert os.listdir(wp_root / "wp-content/uploads") == []

    def test_move_onto_directory_fails(self, service, wp_root):
        result = service.move(STYLE, "wp-content/themes/mytheme/parts")

        assert result.error_kind == FileErrorKind.STORAGE_FAILURE
        assert (wp_root / STYLE).exists()
        assert sorted(os.listdir(wp_root / "wp-content/themes/mytheme/parts")) == ["header.html"]


class TestFileSystemGateFacade:
    """Tests for the FileSystemGate facade."""

    def test_initialize(self, wp_root):
        assert FileSystemGate.initialize(str(wp_root), authorizer=allow_all) is True
        assert FileSystemGate.is_initialized() is True

    def test_initialize_missing_root(self, temp_dir):
        assert FileSystemGate.initialize(str(temp_dir / "missing")) is False
        assert FileSystemGate.is_initialized() is False

    def test_initialize_creates_backup_store(self, wp_root, backup_dir):
        FileSystemGate.initialize(str(wp_root))

        assert (backup_dir / ".htaccess").exists()

    def test_health_before_initialize(self):
        status = FileSystemGate.get_health_status()

        assert status["gate"] == "FileSystemGate"
        assert status["initialized"] is False
        assert status["healthy"] is False

    def test_health_after_initialize(self, wp_root):
        FileSystemGate.initialize(str(wp_root))
        status = FileSystemGate.get_health_status()

        assert status["healthy"] is True
        assert status["checks"] == {"wp_root": True, "backup_store": True}
        assert "wp-content/themes" in status["details"]["existing_roots"]
        assert FileSystemGate.is_healthy() is True

    def test_default_authorizer_uses_caller_context(self, wp_root, backup_dir):
        FileSystemGate.initialize(str(wp_root))

        denied = FileSystemGate.write_file(STYLE, "x")
        assert denied.error_kind == FileErrorKind.UNAUTHORIZED

        with caller_context(CallerContext(authorized=True, user_id=7)):
            result = FileSystemGate.write_file(STYLE, "x")

        assert result.success is True
        meta = json.loads((backup_dir / f"{result.backup_id}.bak.meta").read_text())
        assert meta["userId"] == 7

    def test_unauthorized_caller_context(self, wp_root):
        FileSystemGate.initialize(str(wp_root))

        with caller_context(CallerContext(authorized=False, user_id=3)):
            result = FileSystemGate.read_file(STYLE)

        assert result.error_kind == FileErrorKind.UNAUTHORIZED

    def test_policy_loaded_from_config_file(self, wp_root, temp_dir):
        config_path = temp_dir / "filesystem.json"
        config_path.write_text(json.dumps({"allowed_extensions": ["txt"]}))

        FileSystemGate.initialize(str(wp_root), config_path=str(config_path), authorizer=allow_all)

        assert FileSystemGate.get_config().allowed_extensions == ("txt",)
        assert FileSystemGate.read_file(STYLE).error_kind == FileErrorKind.INVALID_EXTENSION
        assert FileSystemGate.read_file("wp-content/plugins/myplugin/readme.txt").success is True

    def test_missing_config_file_is_written(self, wp_root, temp_dir):
        config_path = temp_dir / "config" / "filesystem.json"

        assert FileSystemGate.initialize(str(wp_root), config_path=str(config_path)) is True

        data = json.loads(config_path.read_text())
        assert data["max_file_size_bytes"] == 10485760
        assert "wp-content/mu-plugins" in data["allowed_roots"]

    def test_invalid_config_file(self, wp_root, temp_dir):
        config_path = temp_dir / "filesystem.json"
        config_path.write_text("{not json")

        assert FileSystemGate.initialize(str(wp_root), config_path=str(config_path)) is False

    def test_module_level_functions(self, wp_root):
        fs_module.initialize(str(wp_root), authorizer=allow_all)

        assert fs_module.write_file("wp-content/uploads/a.txt", "hello").success is True
        assert fs_module.read_file("wp-content/uploads/a.txt").data["content"] == "hello"
        assert fs_module.file_info("wp-content/uploads/a.txt").data["size"] == 5
        assert fs_module.copy_file("wp-content/uploads/a.txt", "wp-content/uploads/b.txt").success is True
        assert fs_module.move_file("wp-content/uploads/b.txt", "wp-content/uploads/c.txt").success is True
        names = [e["name"] for e in fs_module.list_files("wp-content/uploads").data["entries"]]
        assert names == ["a.txt", "c.txt"]
        assert fs_module.delete_file("wp-content/uploads/c.txt").success is True

    def test_reset(self, wp_root):
        FileSystemGate.initialize(str(wp_root))
        fs_module.reset()

        assert FileSystemGate.is_initialized() is False
