"""
Main NiceGUI application for the story canvas.

Renders the projected story graph of the open project with ui.echart and
provides act tabs, zoom buttons, a property panel and a context menu with
ui.card / ui.row. All state lives in a per-page StoryWorkspace.
"""

import logging
import sys

from nicegui import ui, run, app

from dotenv import load_dotenv
load_dotenv()

from src.paths import ensure_data_dirs
from src.config import get_settings

settings = get_settings()
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)
logger = logging.getLogger(__name__)

# Ensure required directories exist on startup
ensure_data_dirs()

from src.edit.constants import CANVAS_CLICK_EVENT, CHART_EVENT_KEYS
from src.edit.controller import ContextTarget
from src.edit.handlers import canvas_listener_js, setup_canvas_handlers
from src.errors import StoryError
from src.graph_viz import GraphVisualizer
from src.migration import migrate_legacy_backups
from src.models import PLOT_POINT_COLORS, ZoomLevel, is_temp_id
from src.projection import NodeKind
from src.storage import LocalBackup, create_backend
from src.templates import DEFAULT_TEMPLATE, load_templates
from src.workspace import StoryWorkspace

backend = create_backend(settings)
backup = LocalBackup(settings.backup_dir)

migrated = migrate_legacy_backups(backup)
if migrated:
    logger.info(f"Legacy project available as backup {migrated.id}")

ZOOM_BUTTONS = [
    (ZoomLevel.STORY_OVERVIEW, 'public', 'Story overview'),
    (ZoomLevel.PLOT_POINT_FOCUS, 'center_focus_strong', 'Plot point focus'),
    (ZoomLevel.SCENE_DETAIL, 'zoom_in', 'Scene detail'),
    (ZoomLevel.CHARACTER_FOCUS, 'person', 'Character focus'),
]


async def list_project_options():
    """Backend projects plus backup-only ones (offline edits, migrated data)."""
    options = {}
    try:
        for record in await run.io_bound(backend.list_projects):
            options[record['id']] = record.get('title') or record['id']
    except StoryError as e:
        logger.warning(f"Could not list backend projects: {e}")
    for project_id in backup.list_ids():
        if project_id not in options:
            options[project_id] = f'{project_id} (backup)'
    return options


def show_create_project_dialog(on_created):
    """Show modal dialog to create a new project."""
    templates = load_templates()
    with ui.dialog() as dialog, ui.card().classes('w-96'):
        ui.label('Create New Project').classes('text-lg font-bold')
        title_input = ui.input('Title', placeholder='e.g., The Long Winter').classes('w-full')
        template_select = ui.select(
            {name: spec.get('label', name) for name, spec in templates.items()},
            value=DEFAULT_TEMPLATE,
            label='Structure',
        ).classes('w-full')
        error_label = ui.label('').classes('text-red-500 text-sm')

        async def do_create():
            title = (title_input.value or '').strip()
            if not title:
                error_label.text = 'Title is required'
                return
            dialog.close()
            await on_created(title, template_select.value)

        with ui.row().classes('w-full justify-end gap-2 mt-4'):
            ui.button('Cancel', on_click=dialog.close).props('flat')
            ui.button('Create Project', on_click=do_create).props('color=primary')

    dialog.open()
    return dialog


# UI Construction - encapsulated in page function to avoid global state issues
@ui.page('/')
async def main_page():
    workspace = StoryWorkspace(backend, backup, settings)
    visualizer = GraphVisualizer()
    state = {
        'chart': None,
        'context_card': None,
        'details_container': None,
        'context_menu': None,
        'act_toggle': None,
        'zoom_buttons': {},
        'status_label': None,
        'rendered_selection': None,
    }

    # --- Rendering ---

    def render(projection, diff):
        chart = state['chart']
        if chart is None:
            return
        selected = workspace.state.selected_id
        if diff.is_empty and selected == state['rendered_selection']:
            refresh_toolbar()
            return
        state['rendered_selection'] = selected
        # Undo restores are applied in place
        options = visualizer.generate_echarts(projection, selected,
                                              animate=not workspace.undo_manager.is_restoring)
        chart.options['animationDurationUpdate'] = options['animationDurationUpdate']
        chart.options['series'] = options['series']
        chart.update()
        refresh_toolbar()

    workspace.set_render_callback(render)

    def refresh_toolbar():
        if not workspace.store.is_loaded:
            return
        toggle = state['act_toggle']
        if toggle is not None:
            toggle.set_options(
                {a.id: a.name for a in workspace.project.sorted_acts()},
                value=workspace.project.current_act_id,
            )
        for level, button in state['zoom_buttons'].items():
            button.props(f'color={"primary" if workspace.zoom.level == level else "grey"}')

    def on_save_state(save_state):
        label = state['status_label']
        if label is None:
            return
        if save_state.is_busy:
            label.text = 'Saving...'
        elif save_state.has_pending:
            label.text = 'Unsaved changes'
        else:
            label.text = 'All changes saved'

    def on_sync_error(data):
        label = state['status_label']
        if label is None:
            return
        label.text = 'Save failed, will retry'
        with label:
            ui.notify(f"Save failed: {data['message']}", type='negative', position='bottom')

    workspace.sync.on('state_change', on_save_state)
    workspace.sync.on('error', on_sync_error)

    # --- Panels ---

    def close_panel():
        if state['context_card']:
            state['context_card'].set_visibility(False)
        if state['details_container']:
            state['details_container'].clear()

    def dismiss_panel():
        """Closing the panel without saving drops an unsaved temp plot point."""
        if workspace.actions.discard_temp():
            workspace.reproject()
        if workspace.store.is_loaded:
            workspace.apply_effect(workspace.controller.clear_selection())
        close_panel()

    def run_edit(action):
        try:
            action()
        except (StoryError, ValueError) as e:
            ui.notify(str(e), type='negative', position='bottom')

    def show_panel(node_id: str):
        node = workspace.projection().find(node_id)
        container = state['details_container']
        if node is None or container is None:
            close_panel()
            return
        container.clear()
        state['context_card'].set_visibility(True)
        with container:
            if node.kind == NodeKind.PLOT_POINT:
                render_plot_point_panel(node.entity_id)
            elif node.kind == NodeKind.SCENE:
                render_scene_panel(node.entity_id)
            elif node.kind == NodeKind.CHARACTER:
                render_character_panel(node.entity_id, node.parent_id)
            else:
                render_detail_panel(node)

    def render_plot_point_panel(pp_id: str):
        temp = is_temp_id(pp_id)
        pp = workspace.actions.temp if temp else workspace.project.find_plot_point(pp_id)
        if pp is None:
            close_panel()
            return

        def update(**changes):
            def do():
                workspace.actions.update_plot_point(pp.id, **changes)
                if temp:
                    workspace.reproject()
            run_edit(do)

        ui.label('New Plot Point' if temp else 'Plot Point').classes('text-xs text-gray-400 uppercase')
        ui.input('Title', value=pp.title).classes('w-full').on(
            'blur', lambda e: update(title=e.sender.value or pp.title))
        ui.textarea('Description', value=pp.description or '').classes('w-full').props('outlined rows=3').on(
            'blur', lambda e: update(description=e.sender.value or None))
        ui.select(PLOT_POINT_COLORS, value=pp.color if pp.color in PLOT_POINT_COLORS else None,
                  label='Color', on_change=lambda e: update(color=e.value)).classes('w-full')
        ui.label(f'{len(pp.scenes)} scenes').classes('text-sm text-gray-400')

        def add_scene():
            def do():
                workspace.actions.add_scene(pp.id)
                if temp:
                    workspace.reproject()
            run_edit(do)
            show_panel(pp.id)

        def save():
            run_edit(lambda: workspace.actions.save_temp())
            if workspace.state.selected_id:
                show_panel(workspace.state.selected_id)

        def discard():
            workspace.actions.discard_temp()
            workspace.reproject()
            close_panel()

        def delete():
            run_edit(lambda: workspace.actions.delete_plot_point(pp.id))
            close_panel()

        with ui.row().classes('w-full justify-end gap-2'):
            ui.button('Add scene', icon='add', on_click=add_scene).props('flat dense')
            if temp:
                ui.button('Discard', on_click=discard).props('flat dense color=grey')
                ui.button('Save', on_click=save).props('dense color=primary')
            else:
                ui.button('Delete', icon='delete', on_click=delete).props('flat dense color=negative')

    def render_scene_panel(scene_id: str):
        project = workspace.project
        temp = workspace.actions.temp
        owner, scene = project.find_scene(scene_id)
        if scene is None and temp is not None:
            owner, scene = temp, next((s for s in temp.scenes if s.id == scene_id), None)
        if scene is None:
            close_panel()
            return
        in_temp = owner is temp

        def update(**changes):
            def do():
                if in_temp:
                    for key, value in changes.items():
                        setattr(scene, key, value)
                    workspace.reproject()
                else:
                    workspace.store.update_scene(scene.id, **changes)
            run_edit(do)

        ui.label('Scene').classes('text-xs text-gray-400 uppercase')
        ui.input('Title', value=scene.title).classes('w-full').on(
            'blur', lambda e: update(title=e.sender.value or scene.title))
        ui.textarea('Synopsis', value=scene.synopsis).classes('w-full').props('outlined rows=4').on(
            'blur', lambda e: update(synopsis=e.sender.value or ''))
        ui.select({c.id: c.name for c in project.characters}, value=list(scene.character_ids),
                  multiple=True, label='Characters',
                  on_change=lambda e: update(character_ids=list(e.value or []))).classes('w-full')

        if not in_temp:
            with ui.row().classes('w-full items-center gap-2'):
                name_input = ui.input('New character').classes('flex-grow')

                def add_character():
                    name = (name_input.value or '').strip()
                    if not name:
                        return
                    def do():
                        character = workspace.store.add_character(name)
                        workspace.store.update_scene(scene.id, character_ids=scene.character_ids + [character.id])
                    run_edit(do)
                    show_panel(scene.id)

                ui.button(icon='person_add', on_click=add_character).props('flat dense round')

        def delete():
            run_edit(lambda: workspace.actions.delete_scene(scene.id))
            if in_temp:
                workspace.reproject()
            close_panel()

        with ui.row().classes('w-full justify-end'):
            ui.button('Delete', icon='delete', on_click=delete).props('flat dense color=negative')

    def render_character_panel(character_id: str, scene_id: str):
        character = workspace.project.find_character(character_id)
        if character is None:
            close_panel()
            return

        def update(**changes):
            run_edit(lambda: workspace.store.update_character(character.id, **changes))

        ui.label('Character').classes('text-xs text-gray-400 uppercase')
        ui.input('Name', value=character.name).classes('w-full').on(
            'blur', lambda e: update(name=e.sender.value or character.name))
        ui.select(['protagonist', 'antagonist', 'supporting', 'minor'], value=character.character_type,
                  label='Role', on_change=lambda e: update(character_type=e.value)).classes('w-full')
        ui.textarea('Personality', value=character.personality or '').classes('w-full').props('outlined rows=2').on(
            'blur', lambda e: update(personality=e.sender.value or None))
        ui.textarea('Motivation', value=character.motivation or '').classes('w-full').props('outlined rows=2').on(
            'blur', lambda e: update(motivation=e.sender.value or None))

        def remove():
            run_edit(lambda: workspace.actions.delete_node(NodeKind.CHARACTER, character.id, scene_id))
            close_panel()

        with ui.row().classes('w-full justify-end'):
            ui.button('Remove from scene', icon='link_off', on_click=remove).props('flat dense color=negative')

    def render_detail_panel(node):
        ui.label(node.kind.value.title()).classes('text-xs text-gray-400 uppercase')
        ui.label(node.label).classes('text-lg font-bold')

        def remove():
            run_edit(lambda: workspace.actions.delete_node(node.kind, node.entity_id, node.parent_id))
            close_panel()

        with ui.row().classes('w-full justify-end'):
            ui.button('Remove', icon='delete', on_click=remove).props('flat dense color=negative')

    def show_context_menu(target: ContextTarget):
        menu = state['context_menu']
        node = workspace.projection().find(target.node_id)
        if menu is None or node is None:
            return
        menu.clear()
        with menu:
            ui.label(node.label).classes('text-sm font-bold')

            def close():
                workspace.controller.close_context_menu()
                menu.set_visibility(False)

            def delete():
                close()
                run_edit(lambda: workspace.actions.delete_node(node.kind, node.entity_id, node.parent_id))
                close_panel()

            def add_scene():
                close()
                run_edit(lambda: workspace.actions.add_scene(node.entity_id))
                if node.is_temp:
                    workspace.reproject()

            if node.kind == NodeKind.PLOT_POINT:
                ui.button('Add scene', icon='add', on_click=add_scene).props('flat dense')
            ui.button('Delete', icon='delete', on_click=delete).props('flat dense color=negative')
            ui.button('Close', on_click=close).props('flat dense color=grey')
        menu.set_visibility(True)

    handlers = setup_canvas_handlers(workspace, show_panel, close_panel, show_context_menu)

    # --- Project lifecycle ---

    async def open_project(project_id: str):
        close_panel()
        await workspace.close()
        try:
            await workspace.open(project_id)
        except StoryError as e:
            ui.notify(f'Could not open project: {e}', type='negative')
            return
        app.storage.user['active_project'] = project_id
        refresh_toolbar()

    async def create_project(title: str, template: str):
        close_panel()
        await workspace.close()
        try:
            project = await workspace.start_new(title, template)
        except StoryError as e:
            ui.notify(f'Could not create project: {e}', type='negative')
            return
        app.storage.user['active_project'] = project.id
        options = await list_project_options()
        options[project.id] = project.title
        project_select.set_options(options, value=project.id)
        refresh_toolbar()

    def switch_act(act_id):
        if act_id and workspace.store.is_loaded and act_id != workspace.project.current_act_id:
            close_panel()
            run_edit(lambda: workspace.switch_act(act_id))

    def add_act():
        if not workspace.store.is_loaded:
            return
        order = len(workspace.project.acts) + 1
        run_edit(lambda: workspace.store.add_act(f'Act {order}', order=order))
        refresh_toolbar()

    def set_zoom(level: ZoomLevel):
        if workspace.store.is_loaded:
            workspace.set_zoom_level(level)
            refresh_toolbar()

    # --- Layout Construction ---

    ui.keyboard(on_key=handlers['handle_keyboard'])

    # 1. Full Screen Chart
    state['chart'] = ui.echart({'series': [{'type': 'graph', 'layout': 'none', 'data': [], 'links': []}]})
    state['chart'].style('width: 100vw; height: 100vh; position: absolute; top: 0; left: 0; z-index: 0;')
    state['chart'].on('chart:click', handlers['handle_chart_click'], CHART_EVENT_KEYS)
    state['chart'].on('chart:dblclick', handlers['handle_chart_dblclick'], CHART_EVENT_KEYS)
    state['chart'].on('chart:contextmenu', handlers['handle_chart_contextmenu'], CHART_EVENT_KEYS)
    ui.on(CANVAS_CLICK_EVENT, handlers['handle_canvas_click'])
    ui.run_javascript(canvas_listener_js(state['chart'].id))

    # 2. Floating Header
    with ui.row().classes('fixed top-4 left-4 z-10 bg-slate-900/90 p-3 rounded shadow-md backdrop-blur-sm items-center gap-2 border border-slate-700'):
        ui.icon('auto_stories', size='md').classes('text-primary')
        with ui.column().classes('gap-0'):
            ui.label('Story Canvas').classes('text-lg font-bold leading-none text-white')
            state['status_label'] = ui.label('').classes('text-xs text-gray-400 leading-none')

        ui.separator().props('vertical')

        project_options = await list_project_options()
        current = app.storage.user.get('active_project')
        if current not in project_options:
            current = next(iter(project_options), None)

        project_select = ui.select(project_options, value=current, label='Project').props('dense outlined').classes('w-56')
        project_select.on('update:model-value', lambda e: open_project(project_select.value))
        ui.button(icon='add', on_click=lambda: show_create_project_dialog(create_project)).props(
            'flat dense round color=primary').tooltip('Create New Project')

        ui.separator().props('vertical')

        state['act_toggle'] = ui.toggle({}, on_change=lambda e: switch_act(e.value)).props('dense no-caps')
        ui.button(icon='playlist_add', on_click=add_act).props('flat dense round').tooltip('Add Act')

        ui.separator().props('vertical')

        with ui.row().classes('gap-1'):
            for level, icon, tooltip in ZOOM_BUTTONS:
                button = ui.button(icon=icon, on_click=lambda _, lv=level: set_zoom(lv)).props('flat dense round')
                button.tooltip(tooltip)
                state['zoom_buttons'][level] = button

    # 3. Context Panel
    # Starts hidden (visible=False). Content triggers visibility.
    state['context_card'] = ui.card().classes('fixed right-6 top-6 w-96 max-h-[90vh] overflow-y-auto z-20 shadow-2xl flex flex-col gap-4 bg-slate-900/95 backdrop-blur-md border-t-4 border-primary border-x border-b border-slate-700')
    state['context_card'].set_visibility(False)
    with state['context_card']:
        with ui.row().classes('w-full justify-end'):
            ui.button(icon='close', on_click=dismiss_panel).props('flat dense round size=sm')
        state['details_container'] = ui.column().classes('w-full gap-3')

    # 4. Context Menu
    state['context_menu'] = ui.card().classes('fixed left-6 bottom-6 z-30 shadow-xl gap-1 bg-slate-800')
    state['context_menu'].set_visibility(False)

    # Periodic backup and temp promotion
    ui.timer(settings.backup_interval, workspace.tick_autosave)

    async def on_disconnect():
        await workspace.close()

    ui.context.client.on_disconnect(on_disconnect)

    if current:
        await open_project(current)
    else:
        show_create_project_dialog(create_project)


if __name__ in {"__main__", "__mp_main__"}:
    ui.run(
        title='Story Canvas',
        port=8081,
        reload=not getattr(sys, 'frozen', False),
        storage_secret='story_canvas_secret',
    )
