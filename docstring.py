#!/usr/bin/env python

import ast
import pathlib
import re


def get_docstring_args(fd, file_name, func_name, class_name=None):
    """
    Extract docstring parameters from a public function definition
    """
    docstring = ast.get_docstring(fd)
    location = f"file: {file_name}\n"
    if class_name is not None:
        location += f"class: {class_name}\n"
    location += f"function/method: {func_name}\n"

    if len(re.findall(r"Parameters", docstring)) != 1:
        if not fd.args.args or [a.arg for a in fd.args.args] == ["self"]:
            return set()
        raise RuntimeError(
            "Missing required 'Parameters' section in docstring in \n" + location
        )
    if class_name is None and len(re.findall(r"Returns", docstring)) != 1:
        raise RuntimeError(
            "Missing required 'Returns' section in docstring in \n" + location
        )

    if re.search(r"Returns", docstring):
        params_section = re.findall(
            r"(?<=Parameters)(.*)(?=Returns)", docstring, re.DOTALL
        )[0]
    else:
        params_section = re.findall(r"(?<=Parameters)(.*)", docstring, re.DOTALL)[0]

    return set(re.findall(r"^\s*(\w+)\s+\:", params_section, re.MULTILINE))


def get_signature_args(fd):
    """
    Extract signature arguments from function definition
    """
    return set(a.arg for a in fd.args.args if a.arg not in ("self", "cls"))


def check_args(docstring_args, signature_args, file_name, func_name, class_name=None):
    """
    Compare docstring arguments and signature arguments
    """
    for diff_args, problem in [
        (signature_args - docstring_args, "missing docstring"),
        (docstring_args - signature_args, "unsupported arguments/parameters"),
    ]:
        if diff_args:
            msg = f"Found one or more parameters with {problem} in \n"
            msg += f"file: {file_name}\n"
            if class_name is not None:
                msg += f"class: {class_name}\n"
            msg += f"function/method: {func_name}\n"
            msg += f"parameter(s): {diff_args}\n"
            raise RuntimeError(msg)


def is_documented(fd):
    return ast.get_docstring(fd) is not None and not fd.name.startswith("_")


package_path = pathlib.Path(__file__).parent / "mpsearch"
filepaths = sorted(f for f in package_path.iterdir() if f.suffix == ".py")
for filepath in filepaths:
    if filepath.name == "__init__.py":
        continue

    with open(filepath, encoding="utf8") as f:
        module = ast.parse(f.read())

    for node in module.body:
        if isinstance(node, ast.FunctionDef) and is_documented(node):
            check_args(
                get_docstring_args(node, filepath.name, node.name),
                get_signature_args(node),
                filepath.name,
                node.name,
            )
        elif isinstance(node, ast.ClassDef):
            for fd in node.body:
                if isinstance(fd, ast.FunctionDef) and is_documented(fd):
                    check_args(
                        get_docstring_args(fd, filepath.name, fd.name, node.name),
                        get_signature_args(fd),
                        filepath.name,
                        fd.name,
                        node.name,
                    )
