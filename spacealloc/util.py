import functools
import hashlib
import itertools
import os
import subprocess
import sys

import logging
log = logging.getLogger("spacealloc")
program_log = logging.getLogger("program")


def _run_program(argv, root='/', stdin=None, env_prune=None, stderr_to_stdout=False):
    if env_prune is None:
        env_prune = []

    program_log.info("Running... %s", " ".join(argv))

    env = os.environ.copy()
    env.update({"LC_ALL": "C"})
    for var in env_prune:
        env.pop(var, None)

    if stderr_to_stdout:
        stderr_dir = subprocess.STDOUT
    else:
        stderr_dir = subprocess.PIPE
    try:
        proc = subprocess.Popen(argv,
                                stdin=stdin,
                                stdout=subprocess.PIPE,
                                stderr=stderr_dir,
                                close_fds=True,
                                cwd=root, env=env)

        out, err = proc.communicate()
        out = out.decode("utf-8")
        if out:
            if not stderr_to_stdout:
                program_log.info("stdout:")
            for line in out.splitlines():
                program_log.info("%s", line)

        if not stderr_to_stdout and err:
            program_log.info("stderr:")
            for line in err.splitlines():
                program_log.info("%s", line)

    except OSError as e:
        program_log.error("Error running %s: %s", argv[0], e.strerror)
        raise

    program_log.debug("Return code: %d", proc.returncode)

    return (proc.returncode, out)


def run_program(*args, **kwargs):
    return _run_program(*args, **kwargs)[0]


def capture_output(*args, **kwargs):
    return _run_program(*args, **kwargs)[1]


def mount(device, mountpoint, fstype="auto", options=None):
    if options is None:
        options = "defaults"

    mountpoint = os.path.normpath(mountpoint)
    if not os.path.isdir(mountpoint):
        os.makedirs(mountpoint, exist_ok=True)

    argv = ["mount", "-t", fstype, "-o", options, device, mountpoint]
    return run_program(argv)


def umount(mountpoint):
    return run_program(["umount", mountpoint])


def get_sysfs_attr(path, attr):
    if not attr:
        log.debug("get_sysfs_attr() called with attr=None")
        return None

    fullattr = os.path.realpath(os.path.join(path, attr))

    if not os.path.isfile(fullattr) and not os.path.islink(fullattr):
        log.warning("%s is not a valid attribute", attr)
        return None

    with open(fullattr, "r", encoding="utf-8", errors="replace") as f:
        data = f.read()
    return data.strip()


def sha256_file(filename):

    sha256 = hashlib.sha256()
    with open(filename, "rb") as f:

        block = f.read(65536)
        while block:
            sha256.update(block)
            block = f.read(65536)

    return sha256.hexdigest()


class ObjectID(object):

    """This class is meant to be extended by other classes which require
       an ID which is preserved when an object copy is made.
       The value returned by the builtin function id() is not adequate:
       that value represents object identity so it is not in general
       preserved when the object is copied.

       The name of the identifier property is id, its type is int.
    """
    _newid_gen = functools.partial(next, itertools.count())

    def __new__(cls, *args, **kwargs):
        # pylint: disable=unused-argument
        self = super(ObjectID, cls).__new__(cls)
        self.id = self._newid_gen()  # pylint: disable=attribute-defined-outside-init,assignment-from-no-return
        return self


def compare(first, second):
    """ Compare two objects.

        :param first: first object to compare
        :param second: second object to compare
        :returns: 0 if first == second, 1 if first > second, -1 if first < second
        :rtype: int

        None sorts before anything else.
    """

    if first is None and second is None:
        return 0

    elif first is None:
        return -1

    elif second is None:
        return 1

    else:
        return (first > second) - (first < second)


##
# Convenience functions for examples and tests
##


def set_up_logging(log_dir="/tmp", log_prefix="spacealloc"):
    """ Configure the spacealloc logger to write out a log file.

        :keyword str log_dir: path to directory where log files are
        :keyword str log_prefix: prefix for log file names
    """
    log.setLevel(logging.DEBUG)
    program_log.setLevel(logging.DEBUG)

    log_file = os.path.realpath("%s/%s.log" % (log_dir, log_prefix))
    handler = logging.FileHandler(log_file)
    handler.setLevel(logging.DEBUG)
    formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    handler.setFormatter(formatter)
    log.addHandler(handler)
    program_log.addHandler(handler)

    log.info("sys.argv = %s", sys.argv)
    return handler
