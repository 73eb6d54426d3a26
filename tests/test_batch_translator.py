import pytest

from conftest import SPANISH_DICTIONARY, RecordingTranslator
from lyricflash.core.batch_translator import DeduplicatingBatchTranslator, UniqueLineTable, iter_batches
from lyricflash.core.errors import TranslationServiceError
from lyricflash.core.lyrics_normalizer import normalize_lyrics
from lyricflash.core.resilience import ClientError, Ok, RetryPolicy, ServerError

PLACEHOLDER = "Translation unavailable"


def _translator(inner, fake_sleep, batch_size=10, preprocess=False):
    return DeduplicatingBatchTranslator(
        inner,
        batch_size=batch_size,
        retry_policy=RetryPolicy(max_attempts=2, base_delay=0.5),
        placeholder=PLACEHOLDER,
        preprocess=preprocess,
        sleep=fake_sleep,
    )


def test_unique_line_table_maps_every_position():
    table = UniqueLineTable.build(["a", " b ", "a", "c", "b"])
    assert table.texts == ["a", "b", "c"]
    assert table.position_ids == [0, 1, 0, 2, 1]
    assert table.positions_for(0) == [0, 2]
    assert table.id_for("c") == 2
    assert table.expand(["A", "B", "C"]) == ["A", "B", "A", "C", "B"]
    assert table.stats() == {"total": 5, "unique": 3, "saved": 2, "percent_saved": 40}


def test_unique_line_table_is_case_sensitive():
    table = UniqueLineTable.build(["Hola", "hola"])
    assert len(table) == 2


def test_expand_rejects_wrong_length():
    table = UniqueLineTable.build(["a", "b"])
    with pytest.raises(ValueError):
        table.expand(["A"])


def test_iter_batches():
    assert list(iter_batches([1, 2, 3, 4, 5], 2)) == [[1, 2], [3, 4], [5]]


@pytest.mark.asyncio
async def test_duplicate_lines_are_translated_once(fake_sleep):
    inner = RecordingTranslator(SPANISH_DICTIONARY)
    lines = normalize_lyrics("Te quiero\nTe quiero\nAdiós")
    outcome = await _translator(inner, fake_sleep).translate(lines, "ES")
    assert inner.calls == [["Te quiero", "Adiós"]]
    assert outcome.translations == ["I love you", "I love you", "Goodbye"]
    assert outcome.unique_count == 2
    assert outcome.batch_count == 1
    assert not outcome.degraded


@pytest.mark.asyncio
async def test_batches_are_bounded_and_order_is_preserved(fake_sleep):
    inner = RecordingTranslator()
    raw = "\n".join(f"linea {n}" for n in range(23)) + "\nlinea 0\nlinea 5"
    lines = normalize_lyrics(raw)
    outcome = await _translator(inner, fake_sleep, batch_size=10).translate(lines, "ES")
    assert [len(batch) for batch in inner.calls] == [10, 10, 3]
    assert sum(inner.calls, []) == [f"linea {n}" for n in range(23)]
    assert len(outcome.translations) == len(lines)
    assert outcome.translations[-2:] == ["LINEA 0", "LINEA 5"]
    assert outcome.translations == [line.text.upper() for line in lines]


@pytest.mark.asyncio
async def test_preprocessing_changes_only_what_is_sent(fake_sleep):
    inner = RecordingTranslator()
    lines = normalize_lyrics("Pa' ti\nPa' ti")
    outcome = await _translator(inner, fake_sleep, preprocess=True).translate(lines, "ES")
    assert inner.calls == [["Para ti"]]
    assert outcome.translations == ["PARA TI", "PARA TI"]


@pytest.mark.asyncio
async def test_transient_failure_becomes_placeholders(fake_sleep):
    inner = RecordingTranslator(outcomes=[ServerError("down", 503), ServerError("down", 503)])
    lines = normalize_lyrics("uno\ndos\nuno")
    outcome = await _translator(inner, fake_sleep).translate(lines, "ES")
    assert len(inner.calls) == 2
    assert fake_sleep.delays == [0.5]
    assert outcome.translations == [PLACEHOLDER] * 3
    assert outcome.degraded_lines == 2
    assert outcome.degraded


@pytest.mark.asyncio
async def test_only_the_failed_batch_is_degraded(fake_sleep):
    inner = RecordingTranslator(
        outcomes=[Ok(["ONE", "TWO"]), ServerError(), ServerError()]
    )
    lines = normalize_lyrics("uno\ndos\ntres")
    outcome = await _translator(inner, fake_sleep, batch_size=2).translate(lines, "ES")
    assert outcome.translations == ["ONE", "TWO", PLACEHOLDER]
    assert outcome.degraded_lines == 1


@pytest.mark.asyncio
async def test_missing_entries_become_placeholders(fake_sleep):
    inner = RecordingTranslator(outcomes=[Ok(["ONE", ""])])
    lines = normalize_lyrics("uno\ndos\ntres")
    outcome = await _translator(inner, fake_sleep).translate(lines, "ES")
    assert outcome.translations == ["ONE", PLACEHOLDER, PLACEHOLDER]
    assert outcome.degraded_lines == 2


@pytest.mark.asyncio
async def test_client_error_is_fatal(fake_sleep):
    inner = RecordingTranslator(outcomes=[ClientError("Forbidden", 403)])
    lines = normalize_lyrics("uno")
    with pytest.raises(TranslationServiceError) as excinfo:
        await _translator(inner, fake_sleep).translate(lines, "ES")
    assert excinfo.value.status == 403
    assert len(inner.calls) == 1


@pytest.mark.asyncio
async def test_all_empty_batch_skips_the_service(fake_sleep):
    inner = RecordingTranslator()
    translated, failed = await _translator(inner, fake_sleep).translate_unique_batch(["", "  "], "ES")
    assert translated == ["", ""]
    assert failed == 0
    assert inner.calls == []


@pytest.mark.asyncio
async def test_english_lines_are_passed_through(fake_sleep):
    inner = RecordingTranslator(SPANISH_DICTIONARY)
    lines = normalize_lyrics("Te quiero\nBaby I love you\nAdiós\nBaby I love you")
    outcome = await _translator(inner, fake_sleep).translate(lines, "ES")
    assert inner.calls == [["Te quiero", "Adiós"]]
    assert outcome.translations == ["I love you", "Baby I love you", "Goodbye", "Baby I love you"]
    assert not outcome.degraded


@pytest.mark.asyncio
async def test_batch_of_only_english_lines_makes_no_call(fake_sleep):
    inner = RecordingTranslator()
    lines = normalize_lyrics("Baby I love you\nYou and me tonight")
    outcome = await _translator(inner, fake_sleep).translate(lines, "ES")
    assert inner.calls == []
    assert outcome.translations == ["Baby I love you", "You and me tonight"]


@pytest.mark.asyncio
async def test_english_source_skips_translation(fake_sleep):
    inner = RecordingTranslator()
    lines = normalize_lyrics("Hello darkness my old friend\nHello darkness my old friend\nWe meet again")
    outcome = await _translator(inner, fake_sleep).translate(lines, "en")
    assert inner.calls == []
    assert outcome.translations == [line.text for line in lines]
    assert outcome.degraded_lines == 0


@pytest.mark.asyncio
async def test_english_preservation_can_be_disabled(fake_sleep):
    inner = RecordingTranslator()
    translator = DeduplicatingBatchTranslator(
        inner, preprocess=False, preserve_english=False, sleep=fake_sleep
    )
    await translator.translate(normalize_lyrics("Baby I love you\nAdiós"), "ES")
    assert inner.calls == [["Baby I love you", "Adiós"]]
