from __future__ import annotations

import logging

import pytest

from boincrpc.codec import (
    decode,
    encode,
    exchange_versions_request,
    get_messages_request,
    get_results_request,
    set_language_request,
    set_mode_request,
)
from boincrpc.element import Element, parse_element
from boincrpc.models import (
    AccountManagerInfo,
    ActiveTask,
    Component,
    DockerType,
    HostInfo,
    Message,
    ProjectInfo,
    ResultState,
    RunMode,
    TaskResult,
    VersionInfo,
)


def test_decode_version_info() -> None:
    node = parse_element(
        "<server_version><major>7</major><minor>16</minor><release>16</release></server_version>"
    )
    assert decode(VersionInfo, node) == VersionInfo(major=7, minor=16, release=16)


def test_duplicate_tag_last_occurrence_wins(caplog: pytest.LogCaptureFixture) -> None:
    node = parse_element("<server_version><major>7</major><major>8</major></server_version>")
    with caplog.at_level(logging.WARNING, logger="boincrpc.codec"):
        version = decode(VersionInfo, node)
    assert version.major == 8
    warnings = [record for record in caplog.records if record.levelno == logging.WARNING]
    assert len(warnings) == 1
    assert "'major'" in warnings[0].getMessage()


def test_single_tags_do_not_warn(caplog: pytest.LogCaptureFixture) -> None:
    node = parse_element("<server_version><major>7</major></server_version>")
    with caplog.at_level(logging.WARNING, logger="boincrpc.codec"):
        decode(VersionInfo, node)
    assert not caplog.records


def test_unknown_tags_are_ignored_and_bad_fields_are_absent() -> None:
    node = parse_element(
        "<host_info>"
        "<timezone>3600</timezone>"
        "<p_ncpus>eight</p_ncpus>"
        "<p_fpops>4.5e9</p_fpops>"
        "<coprocs><coproc_cuda/></coprocs>"
        "<docker_type>lxc</docker_type>"
        "<docker_compose_type>podman</docker_compose_type>"
        "<p_vm_extensions_disabled>0</p_vm_extensions_disabled>"
        "<domain_name/>"
        "</host_info>"
    )
    host = decode(HostInfo, node)
    assert host.tz_shift == 3600
    assert host.p_ncpus is None
    assert host.p_fpops == pytest.approx(4.5e9)
    assert host.docker_type is None
    assert host.docker_compose_type is DockerType.PODMAN
    assert host.p_vm_extensions_disabled is False
    assert host.domain_name == ""
    assert host.os_name is None


def test_bad_last_duplicate_leaves_field_absent() -> None:
    node = parse_element("<server_version><minor>16</minor><minor>x</minor></server_version>")
    assert decode(VersionInfo, node).minor is None


def test_task_result_decodes_nested_active_task() -> None:
    node = parse_element(
        """
        <result>
            <name> wu_123_0 </name>
            <state>2</state>
            <final_cpu_time>0.000000</final_cpu_time>
            <active_task>
                <active_task_state>1</active_task_state>
                <slot>3</slot>
                <fraction_done>0.421000</fraction_done>
                <unknown_future_tag>1</unknown_future_tag>
            </active_task>
        </result>
        """
    )
    result = decode(TaskResult, node)
    assert result.name == "wu_123_0"
    assert result.state == 2
    assert result.result_state is ResultState.FILES_DOWNLOADED
    assert result.final_cpu_time == 0.0
    assert result.active_task == ActiveTask(active_task_state="1", slot=3, fraction_done=0.421)


def test_task_result_without_active_task() -> None:
    result = decode(TaskResult, parse_element("<result><state>42</state></result>"))
    assert result.active_task is None
    assert result.result_state is None


def test_message_body_reads_cdata_and_project_tag() -> None:
    node = parse_element(
        "<msg><project>SETI@home</project><pri>1</pri><seqno>12</seqno>"
        "<body><![CDATA[\n  Scheduler request completed  \n]]></body><time>1700000000</time></msg>"
    )
    assert decode(Message, node) == Message(
        project_name="SETI@home",
        priority=1,
        msg_number=12,
        body="Scheduler request completed",
        timestamp=1700000000,
    )


def test_project_platforms_and_account_manager_flags() -> None:
    project = decode(
        ProjectInfo,
        parse_element(
            "<project><name>Einstein@Home</name><platforms>"
            "<platform>x86_64-pc-linux-gnu</platform><platform>windows_x86_64</platform>"
            "</platforms><description><![CDATA[ Gravitational waves ]]></description></project>"
        ),
    )
    assert project.platforms == ["x86_64-pc-linux-gnu", "windows_x86_64"]
    assert project.description == "Gravitational waves"

    manager = decode(
        AccountManagerInfo,
        parse_element(
            "<acct_mgr_info><acct_mgr_url>https://bam.boincstats.com/</acct_mgr_url>"
            "<acct_mgr_name>BAM!</acct_mgr_name><have_credentials/></acct_mgr_info>"
        ),
    )
    assert manager == AccountManagerInfo(
        url="https://bam.boincstats.com/", name="BAM!", have_credentials=True
    )


def test_encode_omits_absent_fields() -> None:
    node = encode(VersionInfo(major=7, release=16))
    assert node.name == "server_version"
    assert [(child.name, child.text) for child in node.children] == [
        ("major", "7"),
        ("release", "16"),
    ]
    assert encode(AccountManagerInfo(have_credentials=False)).children == []


@pytest.mark.parametrize(
    "record",
    [
        VersionInfo(major=8, minor=1, release=0, name="BOINC"),
        HostInfo(
            tz_shift=-18000,
            domain_name="",
            p_ncpus=16,
            p_fpops=5.5e9,
            p_vm_extensions_disabled=True,
            docker_type=DockerType.DOCKER,
            os_name="Linux Ubuntu",
        ),
        ProjectInfo(name="Rosetta@home", platforms=["x86_64-pc-linux-gnu"], url="https://boinc.bakerlab.org/rosetta/"),
        AccountManagerInfo(url="https://gridrepublic.org/", have_credentials=True),
        Message(project_name="", priority=2, body="Project <b>down</b> & out", msg_number=3),
        TaskResult(
            name="wu_1",
            version_num=716,
            report_deadline=1700000000.5,
            active_task=ActiveTask(slot=0, pid=4242, elapsed_time=12.25),
        ),
    ],
)
def test_decode_of_encode_reproduces_record(record: object) -> None:
    node = encode(record)
    assert decode(type(record), node) == record
    # And through actual XML text, as it would travel on the wire.
    assert decode(type(record), parse_element(node.to_xml())) == record


def test_encode_of_decode_reproduces_present_tags() -> None:
    source = parse_element(
        "<result><name>wu</name><state>4</state><mystery>1</mystery>"
        "<active_task><slot>1</slot></active_task></result>"
    )
    node = encode(decode(TaskResult, source))
    assert [child.name for child in node.children] == ["name", "state", "active_task"]
    assert node.find("active_task") == Element("active_task", children=[Element("slot", text="1")])


def test_request_builders() -> None:
    versions = exchange_versions_request(VersionInfo(major=8, minor=1, release=0))
    assert versions.to_xml() == (
        "<exchange_versions>\n<major>8</major>\n<minor>1</minor>\n<release>0</release>\n"
        "</exchange_versions>"
    )
    assert get_messages_request(5).find("seqno").text == "5"  # type: ignore[union-attr]
    assert get_results_request(False).children == []
    assert get_results_request(True).find("active_only").text == "1"  # type: ignore[union-attr]

    mode = set_mode_request(Component.GPU, RunMode.NEVER, 3600)
    assert mode.name == "set_gpu_mode"
    assert [child.name for child in mode.children] == ["duration", "never"]
    assert set_mode_request(Component.CPU, RunMode.AUTO, 0).name == "set_run_mode"
    assert set_mode_request(Component.NETWORK, RunMode.RESTORE, 0).name == "set_network_mode"

    assert set_language_request("de_DE").find("language").text == "de_DE"  # type: ignore[union-attr]


def test_request_builders_reject_bad_arguments() -> None:
    with pytest.raises(ValueError):
        get_messages_request(-1)
    with pytest.raises(ValueError):
        set_mode_request(Component.CPU, RunMode.ALWAYS, -5)
    with pytest.raises(ValueError):
        set_language_request("  ")


def test_text_fields_are_trimmed_on_decode() -> None:
    # Surrounding whitespace is layout, not data, so it does not survive a round trip.
    node = encode(TaskResult(name="  padded  "))
    assert node.find("name").text == "  padded  "  # type: ignore[union-attr]
    assert decode(TaskResult, node) == TaskResult(name="padded")
