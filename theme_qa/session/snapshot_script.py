"""In-page script that renders the accessibility snapshot text.

Every emitted element gets a ``data-qa-ref`` attribute holding its ref
(``e1``, ``e2``, ...). Refs from the previous capture are wiped first, so
a ref from an older snapshot no longer resolves to anything.
"""

REF_ATTRIBUTE = "data-qa-ref"

SNAPSHOT_JS = """
(refAttr) => {
  document.querySelectorAll(`[${refAttr}]`).forEach((el) => el.removeAttribute(refAttr));

  const IMPLICIT = {
    a: (el) => (el.hasAttribute("href") ? "link" : null),
    button: () => "button",
    h1: () => "heading", h2: () => "heading", h3: () => "heading",
    h4: () => "heading", h5: () => "heading", h6: () => "heading",
    input: (el) => {
      const type = (el.getAttribute("type") || "text").toLowerCase();
      if (type === "hidden") return null;
      if (type === "checkbox") return "checkbox";
      if (type === "radio") return "radio";
      if (["submit", "button", "reset", "image"].includes(type)) return "button";
      if (type === "search") return "searchbox";
      return "textbox";
    },
    textarea: () => "textbox",
    select: () => "combobox",
    option: () => "option",
    img: (el) => (el.getAttribute("alt") ? "img" : null),
    table: () => "table",
    tr: () => "row",
    td: () => "cell",
    th: () => "columnheader",
    ul: () => "list", ol: () => "list",
    li: () => "listitem",
    nav: () => "navigation",
    main: () => "main",
    form: () => "form",
    dialog: () => "dialog",
    summary: () => "button",
  };

  const norm = (value, max = 100) =>
    String(value || "").replace(/\\s+/g, " ").trim().slice(0, max);

  const visible = (el) => {
    const style = window.getComputedStyle(el);
    if (!style || style.display === "none" || style.visibility === "hidden") return false;
    if (el.getAttribute("aria-hidden") === "true") return false;
    const rect = el.getBoundingClientRect();
    return rect.width > 0 || rect.height > 0 || el.children.length > 0;
  };

  const roleOf = (el) => {
    const explicit = el.getAttribute("role");
    if (explicit) return explicit.split(/\\s+/)[0];
    const implicit = IMPLICIT[el.tagName.toLowerCase()];
    return implicit ? implicit(el) : null;
  };

  const nameOf = (el, role) => {
    const label = el.getAttribute("aria-label");
    if (label) return norm(label);
    const labelledBy = el.getAttribute("aria-labelledby");
    if (labelledBy) {
      const text = labelledBy.split(/\\s+/)
        .map((id) => document.getElementById(id))
        .filter(Boolean).map((n) => n.textContent).join(" ");
      if (norm(text)) return norm(text);
    }
    if (el.labels && el.labels.length) return norm(el.labels[0].textContent);
    for (const attr of ["alt", "title", "placeholder"]) {
      if (el.getAttribute(attr)) return norm(el.getAttribute(attr));
    }
    if (["textbox", "searchbox", "combobox", "list", "table", "form",
         "navigation", "main"].includes(role)) return "";
    return norm(el.innerText || el.textContent);
  };

  const esc = (s) => s.replace(/\\\\/g, "\\\\\\\\").replace(/"/g, '\\\\"');

  let counter = 0;
  const lines = [];

  const walk = (el, depth) => {
    if (!(el instanceof HTMLElement) || !visible(el)) return;
    const role = roleOf(el);
    let childDepth = depth;
    if (role) {
      const ref = `e${++counter}`;
      el.setAttribute(refAttr, ref);
      const name = nameOf(el, role);
      let line = `${"  ".repeat(depth)}- ${role}`;
      if (name) line += ` "${esc(name)}"`;
      line += ` [ref=${ref}]`;
      if (el.getAttribute("aria-expanded")) line += ` [expanded=${el.getAttribute("aria-expanded")}]`;
      if (el.disabled) line += " [disabled]";
      if (role === "link" && el.getAttribute("href")) {
        lines.push(line + ":");
        lines.push(`${"  ".repeat(depth + 1)}- /url: ${el.getAttribute("href")}`);
      } else {
        lines.push(line);
      }
      childDepth = depth + 1;
    }
    for (const child of el.children) walk(child, childDepth);
  };

  walk(document.body, 0);
  return lines.join("\\n");
}
"""
