import os
import re
import shutil
import subprocess
import tempfile
from typing import List

from ..core.errors import RenderError
from ..spec.document_models import CoverLetter, Resume
from ..spec.models import TEMPLATES

_SPECIAL = re.compile(r"[\\&%$#_{}~^]")
_REPLACEMENTS = {
    "\\": r"\textbackslash{}",
    "&": r"\&",
    "%": r"\%",
    "$": r"\$",
    "#": r"\#",
    "_": r"\_",
    "{": r"\{",
    "}": r"\}",
    "~": r"\textasciitilde{}",
    "^": r"\textasciicircum{}",
}

_PREAMBLE = r"""\documentclass[11pt]{article}
\usepackage[margin=0.75in]{geometry}
\usepackage[T1]{fontenc}
\usepackage[utf8]{inputenc}
\usepackage{enumitem}
\usepackage[hidelinks]{hyperref}
\setlength{\parindent}{0pt}
\pagestyle{empty}
\setlist[itemize]{leftmargin=*,itemsep=1pt,topsep=2pt}
"""

_TEMPLATE_STYLES = {
    "classic": r"""\usepackage{mathptmx}
\newcommand{\cvsection}[1]{\vspace{8pt}{\large\bfseries\MakeUppercase{#1}}\par\vspace{-4pt}\rule{\linewidth}{0.4pt}\par}
""",
    "modern": r"""\usepackage{helvet}
\renewcommand{\familydefault}{\sfdefault}
\usepackage{xcolor}
\definecolor{accent}{RGB}{37,99,235}
\newcommand{\cvsection}[1]{\vspace{8pt}{\Large\color{accent}\bfseries #1}\par\vspace{-2pt}{\color{accent}\rule{\linewidth}{1pt}}\par}
""",
    "minimal": r"""\newcommand{\cvsection}[1]{\vspace{10pt}{\bfseries #1}\par\vspace{2pt}}
""",
}


def escape_latex(text: str) -> str:
    return _SPECIAL.sub(lambda m: _REPLACEMENTS[m.group()], text)


def _paragraphs(text: str) -> List[str]:
    return [escape_latex(p.strip()) for p in re.split(r"\n\s*\n", text) if p.strip()]


def _itemize(lines: List[str]) -> List[str]:
    items = [line for line in lines if line.strip()]
    if not items:
        return []
    return [r"\begin{itemize}"] + [rf"\item {escape_latex(item.strip())}" for item in items] + [r"\end{itemize}"]


def render_resume_latex(resume: Resume, template: str = "classic") -> str:
    """Render a full resume to LaTeX source using one of the built-in templates."""
    if template not in TEMPLATES:
        raise ValueError(f"Unknown template {template!r}, expected one of {TEMPLATES}")

    body: List[str] = []
    if resume.name:
        body.append(rf"{{\Huge\bfseries {escape_latex(resume.name)}}}\par")
    if resume.title:
        body.append(rf"{{\large {escape_latex(resume.title)}}}\par")

    contact = resume.contact
    contact_items = [
        escape_latex(v)
        for v in (contact.email, contact.phone, contact.location, contact.linkedin, contact.github, contact.blogs)
        if v
    ]
    if contact_items:
        body.append(r"\vspace{4pt}" + r" $|$ ".join(contact_items) + r"\par")

    if resume.summary:
        body.append(r"\cvsection{Summary}")
        body.extend(p + r"\par" for p in _paragraphs(resume.summary))

    if resume.experience:
        body.append(r"\cvsection{Experience}")
        for job in resume.experience:
            heading = rf"\textbf{{{escape_latex(job.title)}}}"
            if job.company:
                heading += rf" -- {escape_latex(job.company)}"
            if job.period:
                heading += rf" \hfill {escape_latex(job.period)}"
            body.append(heading + r"\par")
            if job.location:
                body.append(rf"\textit{{{escape_latex(job.location)}}}\par")
            body.extend(_itemize(job.description.splitlines()))

    if resume.education:
        body.append(r"\cvsection{Education}")
        for edu in resume.education:
            line = rf"\textbf{{{escape_latex(edu.degree)}}}"
            if edu.institution:
                line += rf" -- {escape_latex(edu.institution)}"
            if edu.year:
                line += rf" \hfill {escape_latex(edu.year)}"
            body.append(line + r"\par")

    if resume.skills:
        body.append(r"\cvsection{Skills}")
        body.append(", ".join(escape_latex(s) for s in resume.skills) + r"\par")

    if resume.projects:
        body.append(r"\cvsection{Projects}")
        for project in resume.projects:
            body.append(rf"\textbf{{{escape_latex(project.name)}}}\par")
            if project.description:
                body.extend(p + r"\par" for p in _paragraphs(project.description))
            if project.techStack:
                body.append(r"\textit{" + ", ".join(escape_latex(t) for t in project.techStack) + r"}\par")

    if resume.achievements:
        body.append(r"\cvsection{Achievements}")
        body.extend(_itemize(resume.achievements))

    return (
        _PREAMBLE
        + _TEMPLATE_STYLES[template]
        + "\\begin{document}\n"
        + "\n".join(body)
        + "\n\\end{document}\n"
    )


def render_cover_letter_latex(letter: CoverLetter) -> str:
    body: List[str] = []

    sender = [letter.senderName, letter.senderAddress, letter.senderEmail, letter.senderPhone]
    body.extend(escape_latex(line) + r"\par" for line in sender if line)
    if letter.date:
        body.append(r"\vspace{12pt}" + escape_latex(letter.date) + r"\par")

    recipient = [letter.recipientName, letter.recipientTitle, letter.companyName, letter.companyAddress]
    recipient = [escape_latex(line) + r"\par" for line in recipient if line]
    if recipient:
        body.append(r"\vspace{12pt}")
        body.extend(recipient)

    body.append(r"\vspace{12pt}")
    if letter.greeting:
        body.append(escape_latex(letter.greeting) + r"\par\vspace{8pt}")
    for text in (letter.opening, letter.body):
        body.extend(p + r"\par\vspace{8pt}" for p in _paragraphs(text))
    if letter.closing:
        body.append(escape_latex(letter.closing) + r"\par\vspace{24pt}")
    if letter.signature:
        body.append(escape_latex(letter.signature) + r"\par")

    return (
        _PREAMBLE
        + _TEMPLATE_STYLES["classic"]
        + "\\begin{document}\n"
        + "\n".join(body)
        + "\n\\end{document}\n"
    )


def compile_latex(source: str, timeout: float = 30) -> bytes:
    """
    Compile LaTeX source to PDF using pdflatex.
    Returns the PDF bytes.
    """
    # Create a temporary directory for compilation
    temp_dir = tempfile.mkdtemp()

    try:
        tex_file = os.path.join(temp_dir, "document.tex")
        with open(tex_file, "w", encoding="utf-8") as f:
            f.write(source)

        # Run pdflatex twice (for proper references if needed)
        for _ in range(2):
            subprocess.run(
                ["pdflatex", "-interaction=nonstopmode", "-output-directory", temp_dir, tex_file],
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                timeout=timeout,
            )

        pdf_file = os.path.join(temp_dir, "document.pdf")
        if not os.path.exists(pdf_file):
            # Try to get error from log
            log_file = os.path.join(temp_dir, "document.log")
            error_msg = "LaTeX compilation failed"
            if os.path.exists(log_file):
                with open(log_file, "r", encoding="utf-8", errors="ignore") as f:
                    for line in f.read().split('\n'):
                        if line.startswith('!'):
                            error_msg = line
                            break
            raise RenderError(error_msg)

        with open(pdf_file, "rb") as f:
            return f.read()

    except subprocess.TimeoutExpired as e:
        raise RenderError("LaTeX compilation timeout", timed_out=True) from e
    except FileNotFoundError as e:
        raise RenderError("pdflatex is not installed") from e
    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)
