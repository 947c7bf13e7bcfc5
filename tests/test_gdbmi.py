"""Tests for the incremental session parser."""

from pathlib import Path

import pytest

import gdbmi
from gdbmi import GdbMiParser, LineReassembler, parse_output
from mi_records import AsyncClass, CString, OutcomeCode, OutputKind, Result, ResultClass, StreamKind

SAMPLE = (Path(__file__).parent / "sample_session.mi").read_bytes()


def _feed(chunks):
    batches = []
    with GdbMiParser(batches.append) as parser:
        for chunk in chunks:
            assert parser.push(chunk) is OutcomeCode.OK
    return batches


def _dicts(batches):
    return [out.to_dict() for batch in batches for out in batch]


class TestLineReassembler:
    def test_holds_partial_line(self):
        lines = LineReassembler()
        assert lines.feed("^do") == []
        assert lines.pending == "^do"
        assert lines.feed("ne\n~") == ["^done"]
        assert lines.pending == "~"

    def test_crlf(self):
        lines = LineReassembler()
        assert lines.feed(b"^done\r") == []
        assert lines.feed(b"\n(gdb)\r\n") == ["^done", "(gdb)"]

    def test_split_multibyte_character(self):
        data = '~"é"\n'.encode("utf-8")
        lines = LineReassembler()
        assert lines.feed(data[:3]) == []
        assert lines.feed(data[3:]) == ['~"é"']

    def test_text_after_unfinished_bytes_keeps_order(self):
        lines = LineReassembler()
        assert lines.feed(b'~"\xc3') == []
        assert lines.feed('x"\n') == ['~"\ufffdx"']

    def test_reset_returns_fragment(self):
        lines = LineReassembler()
        lines.feed("abc")
        assert lines.reset() == "abc"
        assert lines.pending == ""


class TestPush:
    def test_done(self, parser, collector):
        assert parser.push(b"^done\n") is OutcomeCode.OK
        assert len(collector.batches) == 1
        (out,) = collector.batches[0]
        assert out.kind is OutputKind.RESULT
        assert out.result.result_class is ResultClass.DONE
        assert out.result.results == []

    def test_notify(self, parser, collector):
        parser.push(b'=thread-group-added,id="i1"\n')
        (out,) = collector.outputs
        rec = out.oob.async_record
        assert rec.async_class is AsyncClass.THREAD_GROUP_ADDED
        assert rec.results == [Result("id", CString("i1"))]

    def test_console_stream(self, parser, collector):
        parser.push(b'~"hello\\n"\n')
        (out,) = collector.outputs
        assert out.oob.stream_record.kind is StreamKind.CONSOLE
        assert out.oob.stream_record.text == "hello\n"

    def test_accepts_str(self, parser, collector):
        assert parser.push("^done\n") is OutcomeCode.OK
        assert len(collector.outputs) == 1

    def test_partial_line_delivers_nothing(self, parser, collector):
        assert parser.push(b"^done") is OutcomeCode.OK
        assert collector.batches == []
        assert parser.buffering
        parser.push(b"\n")
        assert len(collector.batches) == 1
        assert not parser.buffering

    def test_one_batch_per_push_in_line_order(self, parser, collector):
        parser.push(b'^done\n*running,thread-id="all"\n(gdb)\n')
        assert len(collector.batches) == 1
        kinds = [out.kind for out in collector.batches[0]]
        assert kinds == [OutputKind.RESULT, OutputKind.OOB, OutputKind.PROMPT]

    def test_error_isolation(self, parser, collector):
        parser.push(b"not-mi-syntax\n^done\n")
        (batch,) = collector.batches
        assert [out.kind for out in batch] == [OutputKind.PARSE_ERROR, OutputKind.RESULT]
        assert batch[0].line == "not-mi-syntax"
        assert batch[1].result.result_class is ResultClass.DONE

    def test_lone_surrogate_in_text(self, parser, collector):
        assert parser.push('~"\udcff\\n"\n') is OutcomeCode.OK
        assert parser.push("^done\n") is OutcomeCode.OK
        stream, done = collector.outputs
        assert stream.oob.stream_record.kind is StreamKind.CONSOLE
        assert stream.oob.stream_record.text == "?\n"
        assert done.result.result_class is ResultClass.DONE

    def test_invalid_utf8_is_replaced(self, parser, collector):
        assert parser.push(b'~"bad \xff byte"\n') is OutcomeCode.OK
        (out,) = collector.outputs
        assert out.oob.stream_record.text == "bad \ufffd byte"

    def test_bad_type_is_logic(self, parser):
        assert parser.push(42) is OutcomeCode.LOGIC

    def test_depth_stress(self, parser, collector):
        line = b"^done,a=" + b"[" * 10000 + b"]" * 10000 + b"\n^done\n"
        assert parser.push(line) is OutcomeCode.OK
        first, second = collector.outputs
        assert first.kind is OutputKind.PARSE_ERROR
        assert second.kind is OutputKind.RESULT


class TestChunkBoundaries:
    def test_byte_at_a_time_matches_whole(self):
        whole = _feed([SAMPLE])
        split = _feed([SAMPLE[i : i + 1] for i in range(len(SAMPLE))])
        assert _dicts(split) == _dicts(whole)

    @pytest.mark.parametrize("size", [2, 3, 7, 64])
    def test_fixed_chunks_match_whole(self, size):
        whole = _feed([SAMPLE])
        split = _feed([SAMPLE[i : i + size] for i in range(0, len(SAMPLE), size)])
        assert _dicts(split) == _dicts(whole)

    def test_invalid_bytes_on_every_boundary(self):
        data = b'~"bad \xff byte"\n&"\xe9t\xe9\xc3\xa9"\nnoise \xfe\xfe\n^done\n'
        whole = _dicts(_feed([data]))
        assert whole[0]["text"] == "bad \ufffd byte"
        assert whole[1]["text"] == "\ufffdt\ufffd\u00e9"
        assert whole[2]["kind"] == "parse_error"
        assert whole[3]["class"] == "done"
        for i in range(1, len(data)):
            assert _dicts(_feed([data[:i], data[i:]])) == whole
        assert _dicts(_feed([data[i : i + 1] for i in range(len(data))])) == whole

    def test_sample_contents(self):
        outputs = [out for batch in _feed([SAMPLE]) for out in batch]
        assert len(outputs) == 15
        errors = [out for out in outputs if out.kind is OutputKind.PARSE_ERROR]
        assert [out.line for out in errors] == ["this is inferior output"]
        log = outputs[12].oob.stream_record
        assert log.kind is StreamKind.LOG
        assert log.text == "warning: été\n"
        assert outputs[13].result.token == "3"


class TestLifecycle:
    def test_push_after_destroy_is_logic(self, collector):
        parser = GdbMiParser(collector)
        assert parser.destroy() is OutcomeCode.OK
        assert parser.destroyed
        assert parser.push(b"^done\n") is OutcomeCode.LOGIC
        assert collector.batches == []

    def test_destroy_twice_is_logic(self, collector):
        parser = GdbMiParser(collector)
        parser.destroy()
        assert parser.destroy() is OutcomeCode.LOGIC

    def test_destroy_discards_partial_line(self, collector):
        parser = GdbMiParser(collector)
        parser.push(b"^done")
        parser.destroy()
        assert collector.batches == []

    def test_context_manager_destroys(self, collector):
        with GdbMiParser(collector) as parser:
            parser.push(b"^done\n")
        assert parser.destroyed

    def test_reentrant_push_is_logic(self):
        codes = []

        def callback(batch):
            codes.append(parser.push(b"^done\n"))
            codes.append(parser.destroy())

        parser = GdbMiParser(callback)
        assert parser.push(b"^done\n") is OutcomeCode.OK
        assert codes == [OutcomeCode.LOGIC, OutcomeCode.LOGIC]
        assert not parser.destroyed

    def test_callback_exception_propagates(self):
        def callback(batch):
            raise RuntimeError("boom")

        parser = GdbMiParser(callback)
        with pytest.raises(RuntimeError):
            parser.push(b"^done\n")
        assert parser.destroy() is OutcomeCode.OK

    def test_internal_failure_is_assert(self, monkeypatch, collector):
        def broken(line, max_depth):
            raise KeyError(line)

        monkeypatch.setattr(gdbmi, "parse_mi_line", broken)
        parser = GdbMiParser(collector)
        assert parser.push(b"^done\n") is OutcomeCode.ASSERT
        assert parser.push(b"^done\n") is OutcomeCode.ASSERT
        assert collector.batches == []

    def test_callback_must_be_callable(self):
        with pytest.raises(TypeError):
            GdbMiParser(None)

    def test_recreated_parser_gives_same_outputs(self):
        first = _feed([SAMPLE[:100], SAMPLE[100:]])
        second = _feed([SAMPLE[:100], SAMPLE[100:]])
        assert _dicts(first) == _dicts(second)


class TestFunctionalApi:
    def test_create_push_destroy(self, collector):
        handle = gdbmi.create(collector)
        assert gdbmi.push(handle, b"^exit\n") is OutcomeCode.OK
        assert gdbmi.destroy(handle) is OutcomeCode.OK
        assert gdbmi.push(handle, b"^exit\n") is OutcomeCode.LOGIC
        assert collector.outputs[0].result.result_class is ResultClass.EXIT

    def test_parse_output_drops_unterminated_tail(self):
        outputs = parse_output("^done\n(gdb)")
        assert [out.kind for out in outputs] == [OutputKind.RESULT]
