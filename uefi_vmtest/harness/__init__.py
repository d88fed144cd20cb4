from .session import GuestSession
from .send_file import copy_file, push_to_guest
from .runner import artifact_name, make_invocation, build_artifact, run_test

__all__ = [
    "GuestSession",
    "copy_file",
    "push_to_guest",
    "artifact_name",
    "make_invocation",
    "build_artifact",
    "run_test",
]
