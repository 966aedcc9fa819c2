import hashlib
import os
import subprocess


def checksum(data):
    return hashlib.md5(data).hexdigest()


def legacy_checksum(data):
    return hashlib.sha1(data).hexdigest()  # nosec G401 -- interop with the v1 export format


def prepare(path):
    os.makedirs(path, 0o777)


def archive(name):
    subprocess.run(f"tar czf {name}.tgz data", shell=True)
