import pytest

from anser.model.namespace import Namespace
from anser.model.options import GeneratorOptions


def _valid():
    return GeneratorOptions(job_id="job", ns=Namespace(db="foo", collection="bar"))


def test_valid_options():
    assert _valid().is_valid()


def test_invalid_namespace():
    opts = _valid()
    opts.ns = Namespace(db="foo")
    assert not opts.is_valid()


def test_missing_job_id():
    opts = _valid()
    opts.job_id = ""
    assert not opts.is_valid()


def test_negative_limit():
    opts = _valid()
    opts.limit = -1
    assert not opts.is_valid()


def test_from_dict_reads_fields():
    opts = GeneratorOptions.from_dict(
        {
            "id": "job",
            "dependencies": ["a", "b"],
            "namespace": {"db_name": "foo", "collection": "bar"},
            "query": {"x": 1},
            "limit": 5,
        }
    )
    assert opts.job_id == "job"
    assert opts.depends_on == ["a", "b"]
    assert opts.ns == Namespace(db="foo", collection="bar")
    assert opts.query == {"x": 1}
    assert opts.limit == 5
    assert opts.is_valid()


def test_from_empty_dict_is_default():
    assert GeneratorOptions.from_dict({}) == GeneratorOptions()


def test_from_dict_rejects_bad_limit():
    with pytest.raises(TypeError):
        GeneratorOptions.from_dict({"limit": "ten"})


def test_from_dict_rejects_bad_dependencies():
    with pytest.raises(TypeError):
        GeneratorOptions.from_dict({"dependencies": "a"})