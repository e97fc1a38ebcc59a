"""config.toml のセクション単位マージ。

`[mcp_servers.claude-context]` のような名前付きセクションを1つだけ差し替える。

方針:
- TOML としてはパースしない（行頭/行末の `[` `]` だけを境界として扱う）
- 対象セクション以外の行は改行コードも含めてそのまま残す
- 対象が無ければ末尾に空行1つを挟んで追記する
- I/O はしない（読み書きは codex_config 側）

既知の癖:
- 同じヘッダが複数ある場合、最初の位置に1回だけ書き込み、
  2回目以降のヘッダはその本文ごと捨てる（重複は残さない）
"""

from __future__ import annotations


def section_header(name: str) -> str:
    return f"[{name}]"


def is_section_header(line: str) -> bool:
    """`[...]` 形式の行か（`[[array]]` も境界扱い）。"""
    s = _strip_eol(line)
    return s.startswith("[") and s.endswith("]")


def _strip_eol(line: str) -> str:
    return line.rstrip("\r\n")


def _split_lines(text: str) -> list[str]:
    """LF だけで分割する（行末は残す）。"""
    parts = text.split("\n")
    lines = [p + "\n" for p in parts[:-1]]
    if parts[-1]:
        lines.append(parts[-1])
    return lines


def _normalize(rendered: str) -> str:
    return rendered.rstrip("\r\n") + "\n"


def merge_section(document: str | None, section_name: str, rendered: str) -> str:
    """document 内の section_name を rendered に置き換えた全文を返す。

    document が None（ファイル無し）または空なら rendered だけを返す。
    """
    block = _normalize(rendered)
    if not document:
        return block

    header = section_header(section_name)
    out: list[str] = []
    pending_blank: list[str] = []
    in_target = False
    found = False

    for line in _split_lines(document):
        bare = _strip_eol(line)

        if bare == header:
            if not found:
                out.append(block)
                found = True
            in_target = True
            pending_blank = []
            continue

        if in_target:
            if is_section_header(line):
                # 次セクションとの区切り空行は残す
                in_target = False
                out.extend(pending_blank)
                pending_blank = []
            elif bare.strip() == "":
                pending_blank.append(line)
                continue
            else:
                pending_blank = []
                continue

        out.append(line)

    if not found:
        # 区切りの要否は最終行で判断する（CRLF や空白だけの行も空行扱い）
        last = _split_lines(document)[-1]
        text = document
        if not text.endswith("\n"):
            text += "\n"
        if _strip_eol(last).strip() != "":
            text += "\n"
        return text + block

    merged = "".join(out)
    if not merged.endswith("\n"):
        merged += "\n"
    return merged


def find_section(document: str | None, section_name: str) -> str | None:
    """最初に現れる section_name のテキスト（ヘッダ込み）を返す。無ければ None。"""
    if not document:
        return None

    header = section_header(section_name)
    lines: list[str] = []
    in_target = False
    for raw in _split_lines(document):
        line = _strip_eol(raw)
        if in_target:
            if is_section_header(line):
                break
            lines.append(line)
        elif line == header:
            in_target = True
            lines.append(line)

    if not lines:
        return None
    while lines and lines[-1].strip() == "":
        lines.pop()
    return "\n".join(lines)


def has_section(document: str | None, section_name: str) -> bool:
    return find_section(document, section_name) is not None
