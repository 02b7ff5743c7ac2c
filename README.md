# nixjbplugins

A generator for a Nix-friendly database of JetBrains IDE plugins.

It downloads the JetBrains updates feed to find the current IDE releases and
the two plugin indices of the JetBrains marketplace. For every IDE release it
picks the first listed plugin version whose `since-build`/`until-build` range
contains the IDE's build number, and records the plugin's download path and
its hash. The result can be consumed from Nix expressions to fetch plugins
reproducibly.

## Requirements

- Python 3.11 or newer
- `nix-prefetch-url` and `nix-store` on `PATH` (used to compute plugin hashes)
- Network access to the JetBrains update and marketplace servers

## Installation

```
pip install .
```

## Usage

Generate or update the database in a directory:

```
nixjbplugins --output-path ./data generate
```

This writes:

- `all_plugins.json`: every known plugin version, keyed by
  `<plugin-id>/--/<version>`, with the download path (`p`) relative to
  `https://downloads.marketplace.jetbrains.com/` and the SHA-256 hash (`h`)
  reported by `nix-prefetch-url`, converted to base64. `.jar` downloads are
  hashed with `--executable`, everything else with `--unpack`.
- `ides/<ide>-<version>.json`: for one IDE release, a map from plugin ID to
  the plugin version compatible with it.

The `ides` directory must already exist in the output path. Plugin versions
already in `all_plugins.json` are reused and not downloaded again; downloads
that answer 404 are skipped. Up to 16 plugins are processed at once, each
retried up to three times; the run stops at the first plugin that still fails.
A handful of plugins known to be broken on the marketplace are skipped.

Drop plugin versions from `all_plugins.json` that no file in `ides/` refers
to any more:

```
nixjbplugins --output-path ./data cleanup
```

Both commands log progress to standard error. On failure the error is printed
and the exit status is 1.

Covered IDEs are IntelliJ IDEA (Ultimate and Community), PhpStorm, WebStorm,
PyCharm (Professional and Community), RubyMine, CLion, GoLand, DataGrip,
DataSpell, Rider, Android Studio, RustRover, Aqua, Writerside and MPS. Only
releases from the release channels with versions starting with `2024.3.`,
`2025.`, `2026.` or `2027.` are processed.

## Library use

The pieces are usable on their own:

- `nixjbplugins.ides`: `IdeProduct`, `IdeVersion`, `parse_updates` and
  `collect_ids` for the JetBrains updates feed.
- `nixjbplugins.plugins`: `PluginDb`, `PluginDbEntry`, `db_load`,
  `db_load_full`, `db_update`, `db_save`, `db_cleanup` and
  `supported_version`.
- `nixjbplugins.versioncmp`: `Version` and `compare_versions`, a lenient
  comparison of build numbers.
- `nixjbplugins.nixhash`: `from_nix_base32`, `to_nix_base32` and
  `nix32_to_base64`.

## Running the tests

```
pip install .[test]
pytest
```