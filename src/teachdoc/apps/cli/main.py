from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from tqdm import tqdm

from teachdoc.core.config import GeneratorConfig
from teachdoc.core.errors import SpecValidationError, TeachdocError
from teachdoc.core.generate import generate_documents, summarize
from teachdoc.core.render.docx_renderer import generate_docx
from teachdoc.core.render.pdf_renderer import generate_pdf
from teachdoc.core.render.pptx_renderer import generate_pptx_from_slides
from teachdoc.core.render.pptx_template import PptxOptions, discover_layouts
from teachdoc.core.slides.slide_markdown import parse_slide_markdown
from teachdoc.core.store import DocumentStore
from teachdoc.core.types import DOCUMENT_TYPES, LessonBundle
from teachdoc.core.validate.schema_validate import ensure_valid, iter_spec_errors, schema_dir

logger = logging.getLogger(__name__)


def _project_root() -> Path:
    # .../src/teachdoc/apps/cli/main.py -> .../src/teachdoc -> .../src -> project root
    return Path(__file__).resolve().parents[4]


def _load_json(path: Path) -> object:
    return json.loads(path.read_text(encoding="utf-8"))


def _load_json_dict(path: Path) -> dict:
    obj = _load_json(path)
    if not isinstance(obj, dict):
        raise TypeError(f"expected object at {path} to be a JSON object")
    return obj


def _print_errors(errors: list[str], limit: int = 30) -> None:
    for m in errors[:limit]:
        print(f"  - {m}")
    if len(errors) > limit:
        print(f"  ... ({len(errors)} errors)")


def _resolve_image_paths(spec: dict, base_dir: Path) -> dict:
    """Replace `path` on PDF image elements with the file's bytes under `data`.

    Anything not shaped like pages of elements is left for the schema to report.
    """
    pages = spec.get("pages")
    if not isinstance(pages, list):
        return spec
    for page in pages:
        elements = page.get("elements") if isinstance(page, dict) else None
        if not isinstance(elements, list):
            continue
        for el in elements:
            if not (isinstance(el, dict) and el.get("type") == "image" and isinstance(el.get("path"), str)):
                continue
            image_path = base_dir / el["path"]
            if image_path.is_file():
                el["data"] = image_path.read_bytes()
                del el["path"]
    return spec


def _config(args: argparse.Namespace) -> GeneratorConfig:
    return GeneratorConfig.from_env().merged(
        storage_dir=getattr(args, "storage_dir", None),
        database_path=getattr(args, "db", None),
        template_path=getattr(args, "template", None),
        template_id=getattr(args, "template_id", None),
        manifest_path=getattr(args, "manifest", None),
    )


def _store(cfg: GeneratorConfig) -> DocumentStore:
    store = DocumentStore(cfg.database_path, cfg.storage_dir)
    store.ensure_schema()
    return store


def _write_output(out_path: Path, data: bytes) -> None:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_bytes(data)


def cmd_paths(args: argparse.Namespace) -> int:
    cfg = _config(args)
    print(f"project_root: {_project_root()}")
    print(f"schemas: {schema_dir()}")
    for k, v in cfg.to_dict().items():
        print(f"config.{k}: {v}")
    return 0


def cmd_validate(args: argparse.Namespace) -> int:
    instance_path = Path(args.instance).resolve()
    if not instance_path.exists():
        print(f"[NG] instance not found: {instance_path}")
        return 2

    instance = _load_json(instance_path)
    if args.schema == "pdf_spec" and isinstance(instance, dict):
        instance = _resolve_image_paths(instance, instance_path.parent)

    errors = iter_spec_errors(args.schema, instance)
    if errors:
        print(f"[NG] {args.schema}: {instance_path.as_posix()}")
        _print_errors(errors)
        return 2
    print(f"[OK] {args.schema}")
    return 0


def cmd_render_pdf(args: argparse.Namespace) -> int:
    spec_path = Path(args.spec).resolve()
    if not spec_path.exists():
        print(f"[NG] spec not found: {spec_path}")
        return 2

    spec = _resolve_image_paths(_load_json_dict(spec_path), spec_path.parent)
    result = generate_pdf(spec)
    out_path = Path(args.out).resolve() if args.out else spec_path.with_name(result.filename)
    _write_output(out_path, result.buffer)
    print(f"[OK] rendered: {out_path} ({result.metadata['pageCount']} page(s))")
    return 0


def cmd_render_docx(args: argparse.Namespace) -> int:
    spec_path = Path(args.spec).resolve()
    if not spec_path.exists():
        print(f"[NG] spec not found: {spec_path}")
        return 2

    result = generate_docx(_load_json_dict(spec_path))
    out_path = Path(args.out).resolve() if args.out else spec_path.with_name(result.filename)
    _write_output(out_path, result.buffer)
    print(f"[OK] rendered: {out_path}")
    return 0


def cmd_layouts(args: argparse.Namespace) -> int:
    cfg = _config(args)
    if cfg.template_path is None or not cfg.template_path.exists():
        print(f"[NG] template not found: {cfg.template_path}")
        return 2

    layouts = discover_layouts(
        cfg.template_path.read_bytes(), template_id=cfg.template_id, manifest_path=cfg.manifest_path
    )
    if args.json:
        print(json.dumps([l.to_dict() for l in layouts], ensure_ascii=False, indent=2))
        return 0

    print(f"[OK] {len(layouts)} layout(s) in {cfg.template_path}")
    for l in layouts:
        print(f"  - slide {l.slide_number}: {l.name} {' '.join(l.placeholders)}")
    return 0


def cmd_slides(args: argparse.Namespace) -> int:
    in_path = Path(args.input).resolve()
    if not in_path.exists():
        print(f"[NG] input not found: {in_path}")
        return 2

    title = args.title or in_path.stem
    if in_path.suffix.lower() == ".json":
        slides = _load_json(in_path)
    else:
        slides = parse_slide_markdown(in_path.read_text(encoding="utf-8"), title)
    if not slides:
        print("[NG] no slides found in input")
        return 2

    cfg = _config(args)
    options = PptxOptions(
        title=title,
        subtitle=args.subtitle or "",
        template_path=cfg.template_path,
        template_id=cfg.template_id,
        manifest_path=cfg.manifest_path,
        date=args.date,
    )
    result = generate_pptx_from_slides(slides, options)
    out_path = Path(args.out).resolve()
    _write_output(out_path, result.buffer)
    print(f"[OK] rendered: {out_path} ({result.metadata['slideCount']} slide(s))")
    return 0


def cmd_generate(args: argparse.Namespace) -> int:
    bundle_path = Path(args.bundle).resolve()
    if not bundle_path.exists():
        print(f"[NG] bundle not found: {bundle_path}")
        return 2

    data = _load_json_dict(bundle_path)
    try:
        ensure_valid("lesson_bundle", data)
    except SpecValidationError as e:
        print(f"[NG] lesson_bundle: {bundle_path.as_posix()}")
        _print_errors(e.errors)
        return 2

    types = [t.strip() for t in args.types.split(",") if t.strip()]
    unknown = [t for t in types if t not in DOCUMENT_TYPES]
    if not types or unknown:
        print(f"[NG] unknown document type(s): {', '.join(unknown) or '(none given)'}")
        print(f"      choose from: {', '.join(DOCUMENT_TYPES)}")
        return 2

    cfg = _config(args)
    store = _store(cfg)
    records = generate_documents(
        store,
        LessonBundle.from_dict(data),
        types,
        cfg,
        generated_by=args.generated_by,
        progress=lambda ts: tqdm(ts, desc="generate", unit="doc", disable=args.no_progress),
    )
    print(f"[OK] generated {len(records)} document(s)")
    print(json.dumps(summarize(records), ensure_ascii=False, indent=2))
    return 0


def cmd_list(args: argparse.Namespace) -> int:
    if not args.course and not args.lesson:
        print("[NG] give --course or --lesson")
        return 2

    store = _store(_config(args))
    if args.lesson:
        docs = store.list_for_lesson(args.lesson)
    else:
        docs = store.list_for_course(args.course, document_type=args.type)

    for d in docs:
        print(f"{d.id}  {d.document_type:<20}  {d.generated_at}  {d.filename}  ({d.file_size} bytes)")
    print(f"[OK] {len(docs)} document(s)")
    return 0


def cmd_show(args: argparse.Namespace) -> int:
    doc = _store(_config(args)).get(args.id)
    if doc is None:
        print(f"[NG] document not found: {args.id}")
        return 2
    print(json.dumps(doc.to_dict(), ensure_ascii=False, indent=2))
    return 0


def cmd_download(args: argparse.Namespace) -> int:
    doc, data = _store(_config(args)).read_bytes(args.id)
    out_path = Path(args.out).resolve() if args.out else Path.cwd() / doc.filename
    _write_output(out_path, data)
    print(f"[OK] downloaded: {out_path}")
    return 0


def cmd_delete(args: argparse.Namespace) -> int:
    if not _store(_config(args)).delete(args.id):
        print(f"[NG] document not found: {args.id}")
        return 2
    print(f"[OK] deleted: {args.id}")
    return 0


def _add_store_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--storage-dir", help="directory for generated files (env: TEACHDOC_STORAGE_DIR)")
    p.add_argument("--db", help="sqlite database path (env: TEACHDOC_DATABASE_PATH)")


def _add_template_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--template", help="PPTX template path (env: TEACHDOC_TEMPLATE_PATH)")
    p.add_argument("--template-id", help="template id in the layout manifest")
    p.add_argument("--manifest", help="layout manifest JSON path")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="teachdoc")
    parser.add_argument("--log-level", default=None, help="logging level (default: WARNING)")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_paths = sub.add_parser("paths", help="show important project paths and effective config")
    _add_store_args(p_paths)
    p_paths.set_defaults(func=cmd_paths)

    p_val = sub.add_parser("validate", help="validate a json file against a bundled schema")
    p_val.add_argument("--schema", required=True, help="schema name (e.g. pdf_spec, docx_spec, slide_data)")
    p_val.add_argument("--instance", required=True, help="path to json to validate")
    p_val.set_defaults(func=cmd_validate)

    p_pdf = sub.add_parser("render-pdf", help="compile a PDF spec json into a .pdf")
    p_pdf.add_argument("spec", help="path to PDF spec json")
    p_pdf.add_argument("--out", help="output .pdf path (default: next to the spec)")
    p_pdf.set_defaults(func=cmd_render_pdf)

    p_docx = sub.add_parser("render-docx", help="compile a DOCX spec json into a .docx")
    p_docx.add_argument("spec", help="path to DOCX spec json")
    p_docx.add_argument("--out", help="output .docx path (default: next to the spec)")
    p_docx.set_defaults(func=cmd_render_docx)

    p_lay = sub.add_parser("layouts", help="list the layouts discovered in a PPTX template")
    _add_template_args(p_lay)
    p_lay.add_argument("--json", action="store_true", help="print layouts as json")
    p_lay.set_defaults(func=cmd_layouts)

    p_sl = sub.add_parser("slides", help="compile slide markdown (or SlideData json) into a .pptx")
    p_sl.add_argument("input", help="path to slide markdown (.md) or SlideData array (.json)")
    p_sl.add_argument("--out", required=True, help="output .pptx path")
    p_sl.add_argument("--title", help="presentation title (default: input file stem)")
    p_sl.add_argument("--subtitle", help="presentation subtitle")
    p_sl.add_argument("--date", help="text for {{date}} tags (default: today)")
    _add_template_args(p_sl)
    p_sl.set_defaults(func=cmd_slides)

    p_gen = sub.add_parser("generate", help="generate and store documents for a lesson bundle")
    p_gen.add_argument("bundle", help="path to lesson bundle json")
    p_gen.add_argument("--types", required=True, help=f"comma separated: {','.join(DOCUMENT_TYPES)}")
    p_gen.add_argument("--generated-by", help="user id recorded with each document")
    p_gen.add_argument("--no-progress", action="store_true", help="hide the progress bar")
    _add_store_args(p_gen)
    _add_template_args(p_gen)
    p_gen.set_defaults(func=cmd_generate)

    p_ls = sub.add_parser("list", help="list stored documents, newest first")
    p_ls.add_argument("--course", help="course id")
    p_ls.add_argument("--lesson", help="lesson id")
    p_ls.add_argument("--type", choices=DOCUMENT_TYPES, help="filter course listing by document type")
    _add_store_args(p_ls)
    p_ls.set_defaults(func=cmd_list)

    p_show = sub.add_parser("show", help="show one stored document record")
    p_show.add_argument("id")
    _add_store_args(p_show)
    p_show.set_defaults(func=cmd_show)

    p_dl = sub.add_parser("download", help="copy a stored document out (checksum verified)")
    p_dl.add_argument("id")
    p_dl.add_argument("--out", help="output path (default: ./<filename>)")
    _add_store_args(p_dl)
    p_dl.set_defaults(func=cmd_download)

    p_del = sub.add_parser("delete", help="delete a stored document and its file")
    p_del.add_argument("id")
    _add_store_args(p_del)
    p_del.set_defaults(func=cmd_delete)

    return parser


def run(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    level = args.log_level or GeneratorConfig.from_env().log_level
    logging.basicConfig(level=level.upper(), format="%(levelname)s %(name)s: %(message)s")

    try:
        return args.func(args)
    except TeachdocError as e:
        print(f"[NG] {e}")
        return 2


def main() -> None:
    raise SystemExit(run())


if __name__ == "__main__":
    main()
