from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response

from ..schemas import FileContent, FolderBody, MoveBody, RenameBody, WriteBody
from ..store import DocumentStore

router = APIRouter()


def get_store(request: Request) -> DocumentStore:
	return request.app.state.store


def _dump_file(file: FileContent, content_key: str = "content") -> dict:
	payload = file.model_dump(mode="json", by_alias=True)
	if content_key != "content":
		payload[content_key] = payload.pop("content")
	return payload


@router.post("/markdown", status_code=201)
def save_markdown(body: WriteBody, response: Response, store: DocumentStore = Depends(get_store)):
	result = store.write(body.path, body.markdown)
	if not result.created:
		response.status_code = 200
	return {
		"message": "Markdown file created successfully" if result.created else "Markdown file updated successfully",
		"filename": result.path,  # echo back the normalized API path
		"fullPath": result.full_path,
		"created": result.created,
	}


@router.put("/markdown")
def update_markdown(body: WriteBody, store: DocumentStore = Depends(get_store)):
	result = store.update(body.path, body.markdown)
	return {
		"message": "Markdown file updated successfully",
		"filename": result.path,
		"fullPath": result.full_path,
		"created": False,
	}


@router.get("/markdown")
def get_markdown(path: Optional[str] = None, store: DocumentStore = Depends(get_store)):
	"""Directory tree when path is a folder (root by default), else the note."""
	result = store.read(path)
	if isinstance(result, FileContent):
		return _dump_file(result, content_key="markdown")
	return [node.model_dump(exclude_none=True) for node in result]


@router.get("/markdown/content")
def get_markdown_content(path: str, store: DocumentStore = Depends(get_store)):
	return _dump_file(store.read_content(path))


@router.get("/markdown/names")
def get_item_names(dir_path: Optional[str] = Query(None, alias="dirPath"), store: DocumentStore = Depends(get_store)):
	return store.list_names(dir_path)


@router.post("/markdown/folder", status_code=201)
def create_folder(body: FolderBody, store: DocumentStore = Depends(get_store)):
	event = store.create_folder(body.path)
	return {"message": "Folder created successfully", "path": event.path}


@router.delete("/markdown")
def delete_item(path: str, recursive: bool = False, store: DocumentStore = Depends(get_store)):
	event = store.delete(path, recursive=recursive)
	kind = "Folder" if event.is_directory else "File"
	return {"message": f"{kind} deleted successfully", "path": event.path, "isDirectory": event.is_directory}


@router.post("/markdown/move")
def move_item(body: MoveBody, store: DocumentStore = Depends(get_store)):
	event = store.move(body.source, body.target)
	return {"message": "Moved successfully", "path": event.path, "oldPath": event.old_path}


@router.post("/markdown/rename")
def rename_item(body: RenameBody, store: DocumentStore = Depends(get_store)):
	event = store.rename(body.path, body.new_name)
	return {"message": "Renamed successfully", "path": event.path, "oldPath": event.old_path}
