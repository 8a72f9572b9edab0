import functools
import sys

import click
import zrlog
from autoinject import injector

from rbstore.exc import RBStoreError
from rbstore.storage import StorageController, RemoteFile


def _report_errors(cb):

    @functools.wraps(cb)
    def _inner(*args, **kwargs):
        try:
            return cb(*args, **kwargs)
        except RBStoreError as ex:
            zrlog.get_logger("rbstore.cli").debug("Command failed", exc_info=True)
            print(f"{ex.__class__.__name__}: {str(ex)}")
            sys.exit(1)

    return _inner


def _describe(file: RemoteFile) -> str:
    if file.is_dir():
        return f"{'DIR':>12}  {'':<25}  {file.name()}"
    modified = file.last_modified().isoformat() if file.last_modified() else ""
    return f"{file.size():>12}  {modified:<25}  {file.name()}"


@click.group
def main():
    pass


@main.command
@click.argument("path", default="")
@click.option("--recursive", is_flag=True, default=False)
@_report_errors
@injector.inject
def ls(path: str, recursive: bool, controller: StorageController = None):
    with controller.get_storage() as remote:
        remote.walk(path, recursive, lambda f: print(_describe(f)))


@main.command
@click.argument("path")
@_report_errors
@injector.inject
def stat(path: str, controller: StorageController = None):
    with controller.get_storage() as remote:
        print(_describe(remote.stat_file(path)))


@main.command
@click.argument("path")
@click.argument("local_path")
@click.option("--overwrite", is_flag=True, default=False)
@_report_errors
@injector.inject
def get(path: str, local_path: str, overwrite: bool, controller: StorageController = None):
    with controller.get_storage() as remote:
        remote.download_file(path, local_path, allow_overwrite=overwrite)
    print(f"Downloaded [{path}] to [{local_path}]")


@main.command
@click.argument("local_path")
@click.argument("path")
@_report_errors
@injector.inject
def put(local_path: str, path: str, controller: StorageController = None):
    with controller.get_storage() as remote:
        remote.upload_file(path, local_path)
    print(f"Uploaded [{local_path}] to [{path}]")


@main.command
@click.argument("path")
@click.option("--object-disk", is_flag=True, default=False)
@_report_errors
@injector.inject
def rm(path: str, object_disk: bool, controller: StorageController = None):
    with controller.get_storage() as remote:
        if object_disk:
            remote.delete_object_disk_file(path)
        else:
            remote.delete_file(path)
    print(f"Removed [{path}]")


@main.command
@click.argument("src_bucket")
@click.argument("src_key")
@click.argument("dst_path")
@_report_errors
@injector.inject
def cp(src_bucket: str, src_key: str, dst_path: str, controller: StorageController = None):
    with controller.get_storage() as remote:
        size = remote.copy_object(src_bucket, src_key, dst_path)
    print(f"Copied {size} bytes from [{src_bucket}/{src_key}] to [{dst_path}]")
