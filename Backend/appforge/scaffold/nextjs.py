# appforge/scaffold/nextjs.py
"""
Next.js + Prisma project scaffolder.

Renders the deployable file tree as an in-memory mapping of path -> content.
Pure: no I/O, no randomness.
"""
import json
from typing import Dict, List, Protocol

from appforge.core.logging import log
from appforge.pipeline.stages import GeneratedAction, ScheduleSpec


SCHEMA_HEADER = """generator client {
  provider = "prisma-client-js"
}

datasource db {
  provider = "postgresql"
  url      = env("DATABASE_URL")
}
"""


class Scaffolder(Protocol):
    def render(
        self,
        prisma_schema: str,
        actions: List[GeneratedAction],
        schedules: List[ScheduleSpec],
        project_name: str,
    ) -> Dict[str, str]:
        ...


def _indent(code: str, prefix: str = "  ") -> str:
    return "\n".join(prefix + line if line.strip() else line for line in code.splitlines())


def _method(action: GeneratedAction) -> str:
    return "GET" if action.action_type == "query" else "POST"


class NextAppScaffolder:
    """Default scaffolder: one API route per action and one cron route per schedule."""

    def render(
        self,
        prisma_schema: str,
        actions: List[GeneratedAction],
        schedules: List[ScheduleSpec],
        project_name: str,
    ) -> Dict[str, str]:
        files: Dict[str, str] = {
            "package.json": self._package_json(project_name),
            "next.config.js": "/** @type {import('next').NextConfig} */\nmodule.exports = { reactStrictMode: true };\n",
            "vercel.json": self._vercel_json(schedules),
            "prisma/schema.prisma": self._schema(prisma_schema),
            "src/lib/prisma.ts": self._prisma_client(),
            "src/pages/index.tsx": self._index_page(project_name, actions),
            "README.md": self._readme(project_name, actions, schedules),
        }

        for action in actions:
            files[f"src/pages/api/{action.name}.ts"] = self._action_route(action)

        methods = {a.name: _method(a) for a in actions}
        for schedule in schedules:
            method = methods.get(schedule.action or "", "POST")
            files[f"src/pages/api/cron/{schedule.name}.ts"] = self._cron_route(schedule, method)

        log("SCAFFOLD", f"📁 Rendered {len(files)} files for {project_name}")
        return files

    # ═══════════════════════════════════════════════════════
    # CONFIG FILES
    # ═══════════════════════════════════════════════════════

    def _package_json(self, project_name: str) -> str:
        return json.dumps({
            "name": project_name,
            "version": "0.1.0",
            "private": True,
            "scripts": {
                "dev": "next dev",
                "build": "prisma generate && prisma db push --skip-generate && next build",
                "start": "next start",
                "postinstall": "prisma generate",
            },
            "dependencies": {
                "@prisma/client": "^5.22.0",
                "next": "14.2.15",
                "react": "^18.3.1",
                "react-dom": "^18.3.1",
            },
            "devDependencies": {
                "prisma": "^5.22.0",
                "typescript": "^5.6.3",
                "@types/node": "^20.16.0",
                "@types/react": "^18.3.11",
            },
        }, indent=2) + "\n"

    def _vercel_json(self, schedules: List[ScheduleSpec]) -> str:
        crons = [
            {"path": f"/api/cron/{s.name}", "schedule": s.pattern}
            for s in schedules
            if s.active
        ]
        return json.dumps({"crons": crons}, indent=2) + "\n"

    def _schema(self, prisma_schema: str) -> str:
        if "datasource " in prisma_schema:
            return prisma_schema
        return SCHEMA_HEADER + "\n" + prisma_schema

    # ═══════════════════════════════════════════════════════
    # SOURCE FILES
    # ═══════════════════════════════════════════════════════

    def _prisma_client(self) -> str:
        return """import { PrismaClient } from '@prisma/client';

const globalForPrisma = globalThis as unknown as { prisma?: PrismaClient };

export const prisma = globalForPrisma.prisma ?? new PrismaClient();

if (process.env.NODE_ENV !== 'production') globalForPrisma.prisma = prisma;
"""

    def _action_route(self, action: GeneratedAction) -> str:
        method = _method(action)
        body = action.code.strip() or "return { ok: true };"
        return f"""import type {{ NextApiRequest, NextApiResponse }} from 'next';
import {{ prisma }} from '../../lib/prisma';

// {action.description}
async function handler(input: any, prisma: any) {{
{_indent(body)}
}}

export default async function route(req: NextApiRequest, res: NextApiResponse) {{
  if (req.method !== '{method}') {{
    return res.status(405).json({{ error: 'Method not allowed' }});
  }}
  const started = Date.now();
  const input = req.method === 'GET' ? req.query : req.body;
  try {{
    const output = await handler(input, prisma);
    await prisma.executionLog.create({{
      data: {{ actionName: '{action.name}', status: 'success', input, output, durationMs: Date.now() - started }},
    }});
    return res.status(200).json(output);
  }} catch (error: any) {{
    await prisma.executionLog.create({{
      data: {{ actionName: '{action.name}', status: 'error', input, error: String(error?.message ?? error), durationMs: Date.now() - started }},
    }});
    return res.status(500).json({{ error: String(error?.message ?? error) }});
  }}
}}
"""

    def _cron_route(self, schedule: ScheduleSpec, method: str = "POST") -> str:
        target = schedule.action or ""
        request_init = (
            "{ method: 'GET' }" if method == "GET"
            else "{ method: 'POST', headers: { 'content-type': 'application/json' }, body: '{}' }"
        )
        return f"""import type {{ NextApiRequest, NextApiResponse }} from 'next';
import {{ prisma }} from '../../../lib/prisma';

// {schedule.description} ({schedule.pattern} {schedule.timezone})
export default async function cron(req: NextApiRequest, res: NextApiResponse) {{
  if (req.headers.authorization !== `Bearer ${{process.env.CRON_SECRET}}`) {{
    return res.status(401).json({{ error: 'Unauthorized' }});
  }}
  const target = '{target}';
  let output: unknown = null;
  if (target) {{
    const base = `https://${{req.headers.host}}`;
    const response = await fetch(`${{base}}/api/${{target}}`, {request_init});
    output = await response.json();
  }}
  await prisma.executionLog.create({{
    data: {{ actionName: 'cron:{schedule.name}', status: 'success', output: output as any }},
  }});
  return res.status(200).json({{ ok: true, schedule: '{schedule.name}' }});
}}
"""

    def _index_page(self, project_name: str, actions: List[GeneratedAction]) -> str:
        items = "\n".join(
            f"        <li><code>/api/{a.name}</code> {a.description}</li>" for a in actions
        )
        return f"""export default function Home() {{
  return (
    <main style={{{{ fontFamily: 'system-ui', padding: 32 }}}}>
      <h1>{project_name}</h1>
      <ul>
{items}
      </ul>
    </main>
  );
}}
"""

    def _readme(self, project_name: str, actions: List[GeneratedAction], schedules: List[ScheduleSpec]) -> str:
        lines = [f"# {project_name}", "", "Generated Next.js application backed by Prisma and Postgres.", ""]
        if actions:
            lines += ["## API", ""] + [f"- `/api/{a.name}` ({a.action_type}): {a.description}" for a in actions] + [""]
        if schedules:
            lines += ["## Scheduled jobs", ""] + [f"- `{s.pattern}` {s.name}: {s.description}" for s in schedules] + [""]
        return "\n".join(lines)
