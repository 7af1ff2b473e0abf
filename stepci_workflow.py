# stepci_workflow.py
# Test coverage pipeline: build everything instrumented, run the test suite,
# turn the profiling data into an lcov report and publish it.
from __future__ import annotations

from stepci.dsl import disabled, on_push, pipeline, sh
from stepci.step_workflows import (
    cache_step,
    checkout_step,
    collect_coverage_step,
    instrument_coverage_step,
    toolchain_step,
    upload_step,
)


def workflow():
    return pipeline(
        "Test coverage",
        checkout_step(),
        toolchain_step("Set up Java", "java", "15", distribution="zulu"),
        sh("Set up the environment", "python x.py setup"),
        cache_step(
            "Cache cargo",
            "shared",
            paths=["target"],
            inputs=["**/Cargo.lock", "rust-toolchain"],
        ),
        instrument_coverage_step(),
        sh("Build with cargo", "python x.py build --all"),
        sh("Run cargo tests", "python x.py test --all"),
        # Disabled because it causes CI to run out of disk space
        disabled(
            sh(
                "Rerun quick cargo tests, enabling debug dumps to cover more code",
                "python x.py test quick",
                env={
                    "PRUSTI_DUMP_DEBUG_INFO": "true",
                    "PRUSTI_DUMP_VIPER_PROGRAM": "true",
                    "PRUSTI_IGNORE_REGIONS": "true",
                },
            )
        ),
        sh("Check prusti-contracts", "cargo build", cwd="prusti-contracts/prusti-contracts-test"),
        collect_coverage_step(binary_path="./target/debug/", output="lcov.info"),
        upload_step(file="./lcov.info", token_secret="CODECOV_TOKEN"),
        env={
            "RUST_BACKTRACE": "1",
            "PRUSTI_ASSERT_TIMEOUT": "60000",
        },
        trigger=on_push("master", paths_ignore=["docs/**"]),
    )
