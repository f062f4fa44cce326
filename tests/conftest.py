"""Shared fixtures."""

import pytest

from poetik.collaborators import Collaborators
from poetik.config import PipelineConfig

from fakes import LexiconSentiment, TopicEmbeddings


@pytest.fixture
def config():
    cfg = PipelineConfig()
    cfg.enable_inference = False
    cfg.verbosity = 0
    return cfg


@pytest.fixture
def collaborators():
    return Collaborators(sentiment=LexiconSentiment(), embeddings=TopicEmbeddings())


@pytest.fixture
def poem():
    return (
        "Die Sonne scheint hell am blauen Himmel.\n"
        "Vögel singen fröhlich in den Bäumen.\n"
        "Ein wunderbarer Tag beginnt."
    )


@pytest.fixture
def two_stanzas():
    return (
        "Im Wald da rauschen leise Bäche,\n"
        "Ich sah dich an mit einem Blick,\n"
        "Du warst mein ganzes Hoffnungsglück,\n"
        "Und nun bleibt nur die Schwäche.\n"
        "\n"
        "Der Abend ist so mild und lau,\n"
        "Die Wiese glänzt im Himmelblau."
    )
