"""Rendering of utilization state: tables, layout, header, footer, raw text and terminal backends."""