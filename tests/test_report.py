import io

import colorama
import pytest

from cpmhex.report import STATUS_LABELS
from cpmhex.report import DecodeReport
from cpmhex.report import RecordOutcome
from cpmhex.report import RecordStatus


def make_report():
    report = DecodeReport()
    report.append(RecordOutcome(RecordStatus.OK, 1, b':030100003EFF8738\n',
                                address=0x0100, count=3, tag=0, data=b'\x3E\xFF\x87',
                                expected=0x38, actual=0x38))
    report.append(RecordOutcome(RecordStatus.CHECKSUM_MISMATCH, 2, b':030103003EFF8700\r\n',
                                address=0x0103, count=3, tag=0, data=b'\x3E\xFF\x87',
                                expected=0x35, actual=0x00))
    report.append(RecordOutcome(RecordStatus.MALFORMED_DIGIT, 3, b':0G'))
    report.append(RecordOutcome(RecordStatus.OK, 4, b':00000001FF\n',
                                address=0, count=0, tag=1, expected=0xFF, actual=0xFF))
    report.written = 3
    report.terminated = True
    report.consumed = True
    return report


class TestRecordStatus:

    def test_labels(self):
        assert set(STATUS_LABELS) == set(RecordStatus)
        assert STATUS_LABELS[RecordStatus.OK] == 'Ok'

    def test_members(self):
        assert [status.name for status in RecordStatus] == [
            'OK',
            'CHECKSUM_MISMATCH',
            'MALFORMED_DIGIT',
            'PREMATURE_END',
            'UNEXPECTED_DATA',
        ]


class TestRecordOutcome:

    def test___eq__(self):
        outcome1 = RecordOutcome(RecordStatus.OK, 1, b':00000001FF', address=0, count=0, tag=1)
        outcome2 = RecordOutcome(RecordStatus.OK, 1, b':00000001FF', address=0, count=0, tag=1)
        assert outcome1 == outcome2
        assert outcome1 is not outcome2

    def test___eq___raises(self):
        outcome = RecordOutcome(RecordStatus.OK)
        assert outcome.__eq__(None) is NotImplemented
        assert outcome != None  # noqa: E711

    def test___init___default(self):
        outcome = RecordOutcome(RecordStatus.PREMATURE_END)
        assert outcome.status is RecordStatus.PREMATURE_END
        assert outcome.lineno == 0
        assert outcome.text == b''
        assert outcome.address is None
        assert outcome.count is None
        assert outcome.tag is None
        assert outcome.data == b''
        assert outcome.expected is None
        assert outcome.actual is None

    def test___init___bytes(self):
        text = bytearray(b':00')
        data = bytearray(b'abc')
        outcome = RecordOutcome(RecordStatus.OK, text=text, data=data)
        text.clear()
        data.clear()
        assert outcome.text == b':00'
        assert outcome.data == b'abc'
        assert isinstance(outcome.text, bytes)
        assert isinstance(outcome.data, bytes)

    def test___repr__(self):
        outcome = RecordOutcome(RecordStatus.OK, 1, b':00000001FF')
        text = repr(outcome)
        assert text.startswith('<')
        assert 'status:=' in text

    def test___str__(self):
        outcome = RecordOutcome(RecordStatus.OK, 1, b':00000001FF\r\n')
        assert str(outcome) == ':00000001FF - Ok'

    def test_format(self):
        expected = {
            RecordStatus.OK: ':0000 - Ok',
            RecordStatus.MALFORMED_DIGIT: ':0000 - Malformed digit',
            RecordStatus.PREMATURE_END: ':0000 - Premature end of record',
            RecordStatus.UNEXPECTED_DATA: ':0000 - Unexpected extra data',
        }
        for status, text in expected.items():
            assert RecordOutcome(status, 1, b':0000\n').format() == text

    def test_format_checksum(self):
        outcome = RecordOutcome(RecordStatus.CHECKSUM_MISMATCH, 1, b':00000001FE\n',
                                expected=0xFF, actual=0xFE)
        assert outcome.format() == ':00000001FE - Checksum error (expected FF)'

    def test_format_color(self):
        outcome = RecordOutcome(RecordStatus.OK, 1, b':00000001FF\n')
        text = outcome.format(color=True)
        assert text == f':00000001FF - {colorama.Fore.GREEN}Ok{colorama.Style.RESET_ALL}'

        outcome = RecordOutcome(RecordStatus.MALFORMED_DIGIT, 1, b':0G')
        text = outcome.format(color=True)
        assert text == f':0G - {colorama.Fore.RED}Malformed digit{colorama.Style.RESET_ALL}'

    def test_format_unprintable(self):
        outcome = RecordOutcome(RecordStatus.MALFORMED_DIGIT, 1, b':00\x07')
        assert outcome.format() == ':00. - Malformed digit'

    def test_get_meta(self):
        outcome = RecordOutcome(RecordStatus.OK, 7, b':00000001FF', address=0, count=0, tag=1,
                                expected=0xFF, actual=0xFF)
        assert outcome.get_meta() == {
            'status': RecordStatus.OK,
            'lineno': 7,
            'text': b':00000001FF',
            'address': 0,
            'count': 0,
            'tag': 1,
            'data': b'',
            'expected': 0xFF,
            'actual': 0xFF,
        }

    def test_ok(self):
        for status in RecordStatus:
            outcome = RecordOutcome(status)
            assert outcome.ok == (status is RecordStatus.OK)


class TestDecodeReport:

    def test___init__(self):
        report = DecodeReport()
        assert report.outcomes == []
        assert report.consumed is False
        assert report.terminated is False
        assert report.written == 0

    def test___iter__(self):
        report = make_report()
        assert list(report) == report.outcomes

    def test___len__(self):
        assert len(DecodeReport()) == 0
        assert len(make_report()) == 4

    def test_append(self):
        report = DecodeReport()
        outcome = RecordOutcome(RecordStatus.OK)
        report.append(outcome)
        assert report.outcomes == [outcome]
        assert report.outcomes[0] is outcome

    def test_errors(self):
        report = make_report()
        errors = report.errors
        assert [outcome.lineno for outcome in errors] == [2, 3]

    def test_format_lines(self):
        report = make_report()
        assert report.format_lines() == [
            ':030100003EFF8738 - Ok',
            ':030103003EFF8700 - Checksum error (expected 35)',
            ':0G - Malformed digit',
            ':00000001FF - Ok',
        ]

    def test_ok(self):
        assert DecodeReport().ok is True
        assert make_report().ok is False

    def test_print(self):
        report = make_report()
        stream = io.StringIO()
        report.print(stream)
        assert stream.getvalue() == '\n'.join(report.format_lines()) + '\n'

    def test_print_stdout(self, capsys):
        report = make_report()
        report.print()
        captured = capsys.readouterr()
        assert captured.out.splitlines() == report.format_lines()

    def test_print_color(self):
        report = make_report()
        stream = io.StringIO()
        report.print(stream, color=True)
        assert colorama.Fore.RED in stream.getvalue()

    def test_statuses(self):
        assert make_report().statuses == [
            RecordStatus.OK,
            RecordStatus.CHECKSUM_MISMATCH,
            RecordStatus.MALFORMED_DIGIT,
            RecordStatus.OK,
        ]

    def test_summary(self):
        report = make_report()
        assert report.summary() == '4 records, 2 errors, 3 bytes written'

    def test_summary_unterminated(self):
        report = make_report()
        report.terminated = False
        assert report.summary() == '4 records, 2 errors, 3 bytes written, missing end of file record'


@pytest.mark.parametrize('status', list(RecordStatus))
def test_status_label_nonempty(status):
    assert STATUS_LABELS[status]
