# step_workflows/upload.py
from __future__ import annotations

import shlex
from typing import List

from ..model import Step


def upload_step(
    name: str = "Upload coverage to Codecov",
    *,
    file: str = "./lcov.info",
    token_secret: str = "CODECOV_TOKEN",
    uploader: str = "codecovcli",
) -> Step:
    """
    Publish a coverage report.

    The token is read from the secret store into `token_secret` when the step
    runs; the command only references the variable so the value never
    appears in a logged command line.
    """
    return Step(
        name=name,
        kind="upload",
        secrets=(token_secret,),
        data={"file": file, "token_secret": token_secret, "uploader": uploader},
    )


def compile_upload(step: Step) -> List[str]:
    data = step.data or {}
    report = shlex.quote(data.get("file") or "./lcov.info")
    token_var = data.get("token_secret") or "CODECOV_TOKEN"
    uploader = data.get("uploader") or "codecovcli"
    return [
        f"test -f {report}",
        f'{uploader} upload-process -t "${token_var}" -f {report}',
    ]
