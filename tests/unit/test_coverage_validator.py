from study_extract.config import CoverageConfig
from study_extract.types import Note
from study_extract.validation.coverage import CoverageValidator, generated_text, topic_variants

TOPICS = [
    "Photosynthesis",
    "Respiration",
    "Osmosis",
    "Diffusion",
    "Mitosis",
    "Meiosis",
    "Transcription",
    "Translation",
    "Fermentation",
    "Glycolysis",
]


def _numbered_source() -> str:
    return "\n".join(f"{index}. {topic}" for index, topic in enumerate(TOPICS, start=1))


def _note(content: str) -> Note:
    return Note(title="Cell biology", content=content, category="Biology", tags=["cells"])


def test_six_of_ten_topics_gives_sixty_percent() -> None:
    validator = CoverageValidator()
    source = _numbered_source()
    notes = [_note("We covered Photosynthesis, Respiration, Osmosis, Diffusion, Mitosis and Meiosis.")]

    assert validator.extract_topics(source) == TOPICS

    report = validator.validate(source, notes)

    assert report.total_topics == 10
    assert report.percentage == 60.0
    assert report.covered_topics == TOPICS[:6]
    assert report.missing_topics == TOPICS[6:]
    assert report.acceptable


def test_threshold_is_configurable() -> None:
    validator = CoverageValidator(CoverageConfig(threshold=70))
    notes = [_note("Photosynthesis Respiration Osmosis Diffusion Mitosis Meiosis")]

    report = validator.validate(_numbered_source(), notes)

    assert report.percentage == 60.0
    assert not report.acceptable


def test_heading_followed_by_body_is_a_topic() -> None:
    source = (
        "Cell Structure\n"
        "Every living cell is surrounded by a membrane that controls what enters and leaves it.\n"
    )
    validator = CoverageValidator()

    assert "Cell Structure" in validator.extract_topics(source)
    report = validator.validate(source, [_note("The cell structure includes a membrane.")])
    assert report.percentage == 100.0


def test_no_topics_means_full_coverage() -> None:
    report = CoverageValidator().validate("just some lowercase words without any structure", [])

    assert report.total_topics == 0
    assert report.percentage == 100.0
    assert report.acceptable


def test_nothing_generated_means_zero_coverage() -> None:
    report = CoverageValidator().validate(_numbered_source(), [])

    assert report.percentage == 0.0
    assert not report.acceptable
    assert report.missing_topics == TOPICS


def test_topic_cap() -> None:
    source = "\n".join(f"{index}. Topic number {index}" for index in range(1, 40))

    assert len(CoverageValidator(CoverageConfig(max_topics=5)).extract_topics(source)) == 5


def test_variants_and_generated_text() -> None:
    assert topic_variants("Cell-Cycle  Checkpoints") == (
        "cell-cycle checkpoints",
        "cell cycle checkpoints",
        "cellcyclecheckpoints",
    )
    text = generated_text([Note(title="T", content="C", category="General", tags=["a"], id="n-1")])
    assert "n-1" not in text
    assert "T" in text and "C" in text and "a" in text
