import json
from pathlib import Path

import pytest

from buildkit.errors import ResolutionError, ValidationError
from packsmith.foundation.config_io import load_ignore_fallback, resolve_package_root
from packsmith.framework.config import PackageOptions, resolve_package_config


def _write_package_json(root: Path, **fields) -> None:
    (root / "package.json").write_text(json.dumps(fields), encoding="utf-8")


def test_options_path_is_required():
    with pytest.raises(ValidationError, match=r"please provide options\.path"):
        PackageOptions.from_value({})
    with pytest.raises(ValidationError, match=r"please provide options\.path"):
        PackageOptions.from_value({"path": "  "})


def test_unknown_option_keys_fail_fast(tmp_path):
    with pytest.raises(ValidationError, match=r"Unknown option keys under options: adaptors"):
        PackageOptions.from_value({"path": str(tmp_path), "adaptors": ["js"]})


def test_string_options_are_a_path(tmp_path):
    opts = PackageOptions.from_value(tmp_path)

    assert opts.path == str(tmp_path)
    assert opts.load_on_initialize is True
    assert opts.ignore is None


def test_package_json_supplies_identity(tmp_path):
    _write_package_json(tmp_path, name="widgets", version="1.2.0", description="UI", main="index.js")

    config = resolve_package_config({"path": str(tmp_path)})

    assert config.descriptor.name == "widgets"
    assert config.descriptor.version == "1.2.0"
    assert config.descriptor.description == "UI"
    assert config.descriptor.main == "index.js"
    assert config.descriptor.environment == "development"
    assert config.descriptor.root == tmp_path.resolve()
    assert config.sources["name"] == "package.json"
    assert config.adapters == ("js",)


def test_tab_indented_package_json_is_accepted(tmp_path):
    (tmp_path / "package.json").write_text(
        json.dumps({"name": "widgets", "version": "1.0.0"}, indent="\t"), encoding="utf-8"
    )
    (tmp_path / "packsmith.json").write_text(
        json.dumps({"adapters": ["css"]}, indent="\t"), encoding="utf-8"
    )

    config = resolve_package_config({"path": str(tmp_path)})

    assert (config.descriptor.name, config.descriptor.version) == ("widgets", "1.0.0")
    assert config.adapters == ("css",)


def test_malformed_package_json_is_a_validation_error(tmp_path):
    (tmp_path / "package.json").write_text('{"name": "widgets",}', encoding="utf-8")

    with pytest.raises(ValidationError, match=r"Invalid manifest in .*package\.json"):
        resolve_package_config({"path": str(tmp_path)})


def test_explicit_options_override_manifests(tmp_path):
    _write_package_json(tmp_path, name="widgets", version="1.2.0")
    (tmp_path / "packsmith.yaml").write_text("name: other\nadapters: css\n", encoding="utf-8")

    config = resolve_package_config({"path": str(tmp_path), "name": "explicit"})

    assert config.descriptor.name == "explicit"
    assert config.sources["name"] == "options"
    assert config.adapters == ("css",)
    assert config.sources["adapters"] == "config"


def test_config_file_is_consulted_after_package_json(tmp_path):
    (tmp_path / "packsmith.yml").write_text(
        "name: from-config\nversion: 3\nadapters: 'js, css'\npipelining:\n  '*.css': css\n",
        encoding="utf-8",
    )

    config = resolve_package_config({"path": str(tmp_path)})

    assert config.descriptor.name == "from-config"
    assert config.descriptor.version == "3"
    assert config.adapters == ("js", "css")
    assert config.pipelining == {"*.css": "css"}
    assert len(config.manifest_paths) == 1


def test_custom_config_file_name(tmp_path):
    (tmp_path / "build.json").write_text(json.dumps({"name": "custom", "version": "1.0.0"}), encoding="utf-8")

    config = resolve_package_config({"path": str(tmp_path), "config_file": "build"})

    assert config.descriptor.name == "custom"


def test_missing_name_or_version_is_reported(tmp_path):
    with pytest.raises(ValidationError, match=r"please provide a valid package\.name"):
        resolve_package_config({"path": str(tmp_path), "version": "1.0.0"})
    with pytest.raises(ValidationError, match=r"please provide a valid package\.version"):
        resolve_package_config({"path": str(tmp_path), "name": "pkg"})


def test_production_drops_description(tmp_path):
    _write_package_json(tmp_path, name="pkg", version="1.0.0", description="docs")

    config = resolve_package_config({"path": str(tmp_path), "environment": "production"})

    assert config.descriptor.environment == "production"
    assert config.descriptor.description is None


def test_ignore_falls_back_to_first_non_empty_ignore_file(tmp_path):
    (tmp_path / ".packsmithignore").write_text("# only comments\n\n", encoding="utf-8")
    (tmp_path / ".npmignore").write_text("*.map\n# comment\nbuild/\n", encoding="utf-8")
    (tmp_path / ".gitignore").write_text("node_modules/\n", encoding="utf-8")

    lines, source = load_ignore_fallback(tmp_path)
    config = resolve_package_config({"path": str(tmp_path), "name": "pkg", "version": "1"})

    assert (lines, source) == (["*.map", "build/"], ".npmignore")
    assert config.ignore == ("*.map", "build/")
    assert config.sources["ignore"] == ".npmignore"


def test_declared_ignore_disables_the_fallback(tmp_path):
    (tmp_path / ".gitignore").write_text("node_modules/\n", encoding="utf-8")

    config = resolve_package_config({"path": str(tmp_path), "name": "pkg", "version": "1", "ignore": []})

    assert config.ignore == ()


def test_include_only_alias_in_manifest(tmp_path):
    _write_package_json(tmp_path, name="pkg", version="1.0.0", includeOnly=["*.js"])

    config = resolve_package_config({"path": str(tmp_path)})

    assert config.include_only == ("*.js",)
    assert config.sources["include_only"] == "package.json"


def test_include_only_absent_means_exclude_mode(tmp_path):
    config = resolve_package_config({"path": str(tmp_path), "name": "pkg", "version": "1"})

    assert config.include_only is None


def test_invalid_manifest_shapes_are_rejected(tmp_path):
    (tmp_path / "packsmith.yaml").write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ValidationError, match=r"Manifest must contain a mapping"):
        resolve_package_config({"path": str(tmp_path), "name": "pkg", "version": "1"})


def test_invalid_pipelining_shape_is_rejected(tmp_path):
    with pytest.raises(ValidationError, match=r"please provide a valid options\.pipelining"):
        resolve_package_config(
            {"path": str(tmp_path), "name": "pkg", "version": "1", "pipelining": ["*.css"]}
        )


def test_resolve_package_root_accepts_files_and_importable_names(tmp_path):
    (tmp_path / "package.json").write_text("{}", encoding="utf-8")

    assert resolve_package_root(tmp_path / "package.json") == tmp_path.resolve()
    assert resolve_package_root("packsmith") == Path(__file__).resolve().parents[1] / "packsmith"


def test_resolve_package_root_unknown_target(tmp_path):
    with pytest.raises(ResolutionError, match=r"Unable to determine absolute path for package"):
        resolve_package_root(str(tmp_path / "does-not-exist"))
